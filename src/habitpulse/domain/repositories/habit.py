"""Habit repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.habit import Habit


class HabitRepository(Protocol):
    """Persistence for habit documents including their completion records.

    Returned habits are detached from any session and carry their completions.
    """

    def get_by_id(self, habit_id: int, *, user_id: Optional[int] = None) -> Optional[Habit]:
        """Retrieve a habit by ID, optionally scoped to its owner."""
        ...

    def list_for_user(self, user_id: int) -> list[Habit]:
        """List a user's habits, newest first."""
        ...

    def list_with_reminders_enabled(self, *, include_admin: bool = False) -> list[Habit]:
        """List every habit with reminders switched on."""
        ...

    def save(self, habit: Habit) -> Habit:
        """Insert or update a habit and its completions; returns the stored state."""
        ...

    def delete(self, habit: Habit) -> None:
        """Delete a habit and its completions."""
        ...
