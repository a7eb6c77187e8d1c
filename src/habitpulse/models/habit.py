"""Habit tracking data structures."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .user import User


class Frequency(str, Enum):
    """Supported cadence options for habits."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class Habit(SQLModel, table=True):
    """A user-defined habit with its completion buckets, streak and reminder state."""

    __tablename__: ClassVar[str] = "habit"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    name: str = Field(nullable=False, max_length=100)
    frequency: str = Field(default=Frequency.DAILY.value, max_length=16, nullable=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Written only by the streak engine
    current_streak: int = Field(default=0, ge=0, nullable=False)
    longest_streak: int = Field(default=0, ge=0, nullable=False)
    last_completed_date: Optional[date] = Field(default=None)
    streak_start_date: Optional[date] = Field(default=None)

    reminder_enabled: bool = Field(default=False, nullable=False, index=True)
    reminder_time: str = Field(default="09:00", max_length=5, nullable=False)
    # Weekday indices, 0 = Sunday .. 6 = Saturday; empty means every day
    reminder_days: list[int] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    reminder_message: Optional[str] = Field(default=None, max_length=500)
    # Wall-clock time in the reminder timezone (server local when unset)
    last_reminder_sent: Optional[datetime] = Field(default=None)

    completions: list["HabitCompletion"] = Relationship(
        back_populates="habit",
        sa_relationship=relationship(
            "HabitCompletion",
            back_populates="habit",
            cascade="all, delete-orphan",
            lazy="selectin",
            order_by="HabitCompletion.id",
        ),
    )

    user: "User" = Relationship(sa_relationship=relationship("User", back_populates="habits"))

    def reminder_settings(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "reminder_enabled": self.reminder_enabled,
            "reminder_time": self.reminder_time,
            "reminder_days": list(self.reminder_days or []),
            "reminder_message": self.reminder_message,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "frequency": self.frequency,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_completed_date": (
                self.last_completed_date.isoformat() if self.last_completed_date else None
            ),
            "streak_start_date": (
                self.streak_start_date.isoformat() if self.streak_start_date else None
            ),
            "completions": [completion.to_dict() for completion in self.completions],
            "last_reminder_sent": (
                self.last_reminder_sent.isoformat() if self.last_reminder_sent else None
            ),
            **self.reminder_settings(),
        }


class HabitCompletion(SQLModel, table=True):
    """Completion state of one canonical bucket (day, ISO week or month) of a habit."""

    __tablename__: ClassVar[str] = "habit_completion"
    __table_args__ = (UniqueConstraint("habit_id", "bucket_date", name="uq_habit_bucket"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: Optional[int] = Field(default=None, foreign_key="habit.id", index=True)
    bucket_date: date = Field(nullable=False, index=True)
    is_completed: bool = Field(default=False, nullable=False)
    label: str = Field(default="", max_length=64)

    habit: Optional["Habit"] = Relationship(
        back_populates="completions",
        sa_relationship=relationship("Habit", back_populates="completions"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.bucket_date.isoformat() if self.bucket_date else None,
            "is_completed": self.is_completed,
            "label": self.label,
        }
