"""User repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.user import User


class UserRepository(Protocol):
    def get_by_id(self, user_id: int) -> Optional[User]:
        """Retrieve a user by ID."""
        ...

    def get_by_email(self, email: str) -> Optional[User]:
        """Retrieve a user by email address."""
        ...

    def create(self, user: User) -> User:
        """Create a new user."""
        ...

    def delete(self, user: User) -> None:
        """Delete a user together with their habits and completions."""
        ...
