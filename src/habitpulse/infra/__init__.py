"""Infrastructure: database engine, sessions and SQLModel repositories."""
