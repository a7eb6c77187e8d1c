"""SQLModel implementation of User repository."""

from __future__ import annotations

from typing import Callable, Optional

from sqlmodel import Session, select

from ...models.user import User
from ._errors import persistence_errors


class SQLModelUserRepository:
    """SQLModel-based user repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with persistence_errors(f"load user {user_id}"):
            with self.session_factory() as session:
                obj = session.get(User, user_id)
                if obj:
                    session.expunge(obj)
                return obj

    def get_by_email(self, email: str) -> Optional[User]:
        with persistence_errors("look up user by email"):
            with self.session_factory() as session:
                obj = session.exec(select(User).where(User.email == email)).first()
                if obj:
                    session.expunge(obj)
                return obj

    def create(self, user: User) -> User:
        with persistence_errors(f"create user {user.email!r}"):
            with self.session_factory() as session:
                session.add(user)
                session.commit()
                session.refresh(user)
                session.expunge(user)
                return user

    def delete(self, user: User) -> None:
        with persistence_errors(f"delete user {user.id}"):
            with self.session_factory() as session:
                obj = session.get(User, user.id)
                if obj:
                    # Cascades to habits and their completions
                    session.delete(obj)
                    session.commit()
