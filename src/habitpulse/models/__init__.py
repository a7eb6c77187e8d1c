"""SQLModel table exports."""

from .habit import Frequency, Habit, HabitCompletion
from .user import User

__all__ = [
    "Frequency",
    "Habit",
    "HabitCompletion",
    "User",
]
