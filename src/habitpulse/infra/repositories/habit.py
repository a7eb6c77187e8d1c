"""SQLModel implementation of Habit repository."""

from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from ...models.habit import Habit
from ...models.user import User
from ._errors import persistence_errors


class SQLModelHabitRepository:
    """SQLModel-based habit repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def _base_query(self):
        return select(Habit).options(selectinload(Habit.completions))  # type: ignore[arg-type]

    def get_by_id(self, habit_id: int, *, user_id: Optional[int] = None) -> Optional[Habit]:
        """Retrieve a habit by ID; with ``user_id`` only when that user owns it."""
        with persistence_errors(f"load habit {habit_id}"):
            with self.session_factory() as session:
                statement = self._base_query().where(Habit.id == habit_id)
                if user_id is not None:
                    statement = statement.where(Habit.user_id == user_id)
                obj = session.exec(statement).first()
                if obj:
                    session.expunge(obj)
                return obj

    def list_for_user(self, user_id: int) -> list[Habit]:
        """List a user's habits, newest first."""
        with persistence_errors(f"list habits for user {user_id}"):
            with self.session_factory() as session:
                statement = (
                    self._base_query()
                    .where(Habit.user_id == user_id)
                    .order_by(Habit.created_at.desc(), Habit.id.desc())  # type: ignore[union-attr]
                )
                rows = list(session.exec(statement).all())
                session.expunge_all()
                return rows

    def list_with_reminders_enabled(self, *, include_admin: bool = False) -> list[Habit]:
        """List habits with reminders on; admin-owned habits are skipped by default."""
        with persistence_errors("list habits with reminders"):
            with self.session_factory() as session:
                statement = (
                    self._base_query()
                    .join(User, Habit.user_id == User.id)  # type: ignore[arg-type]
                    .where(Habit.reminder_enabled == True)  # noqa: E712
                    .order_by(Habit.id)  # type: ignore[arg-type]
                )
                if not include_admin:
                    statement = statement.where(User.is_admin == False)  # noqa: E712
                rows = list(session.exec(statement).all())
                session.expunge_all()
                return rows

    def save(self, habit: Habit) -> Habit:
        """Insert or update a habit together with its completion records."""
        with persistence_errors(f"save habit {habit.id or habit.name!r}"):
            with self.session_factory() as session:
                merged = session.merge(habit)
                session.commit()
                # Load the collection before detaching so callers can read it
                list(merged.completions)
                session.expunge(merged)
                return merged

    def delete(self, habit: Habit) -> None:
        """Delete a habit; its completions go with it."""
        with persistence_errors(f"delete habit {habit.id}"):
            with self.session_factory() as session:
                obj = session.get(Habit, habit.id)
                if obj:
                    session.delete(obj)
                    session.commit()
