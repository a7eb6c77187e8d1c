"""Validated, allow-listed request payloads for habit operations."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models.habit import Frequency

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _validate_reminder_time(value: str) -> str:
    if not _TIME_PATTERN.match(value):
        raise ValueError("Reminder time must use 24-hour HH:MM format.")
    return value


def _validate_reminder_days(value: Iterable[int]) -> list[int]:
    days = sorted(set(value))
    if any(day < 0 or day > 6 for day in days):
        raise ValueError("Reminder days must be between 0 (Sunday) and 6 (Saturday).")
    return days


def _validate_name(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("Please provide a habit name.")
    return value


class HabitCreate(BaseModel):
    """Payload for creating a habit."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: str = Field(description="Short label for the habit", max_length=100)
    frequency: Frequency = Field(default=Frequency.DAILY, description="Habit cadence")
    reminder_enabled: bool = Field(default=False, description="Toggle habit reminders")
    reminder_time: str = Field(default="09:00", description="Preferred reminder time (HH:MM)")
    reminder_days: list[int] = Field(
        default_factory=list, description="Weekdays to remind on, 0 = Sunday; empty = daily"
    )
    reminder_message: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _validate_name(value)

    @field_validator("reminder_time")
    @classmethod
    def validate_reminder_time(cls, value: str) -> str:
        return _validate_reminder_time(value)

    @field_validator("reminder_days")
    @classmethod
    def validate_reminder_days(cls, value: list[int]) -> list[int]:
        return _validate_reminder_days(value)


class HabitUpdate(BaseModel):
    """Core habit fields a caller may change; anything else is ignored."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: Optional[str] = Field(default=None, max_length=100)
    frequency: Optional[Frequency] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _validate_name(value)


class ReminderSettingsUpdate(BaseModel):
    """Partial reminder settings; only fields present in the payload are applied.

    ``reminder_message`` may be explicitly null to clear a custom message.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    reminder_enabled: Optional[bool] = None
    reminder_time: Optional[str] = None
    reminder_days: Optional[list[int]] = None
    reminder_message: Optional[str] = Field(default=None, max_length=500)

    @field_validator("reminder_time")
    @classmethod
    def validate_reminder_time(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _validate_reminder_time(value)

    @field_validator("reminder_days")
    @classmethod
    def validate_reminder_days(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        if value is None:
            return value
        return _validate_reminder_days(value)

    def changes(self) -> dict[str, object]:
        """Fields the caller actually sent; null is only honoured for the message."""

        present = self.model_dump(include=self.model_fields_set)
        return {
            key: value
            for key, value in present.items()
            if value is not None or key == "reminder_message"
        }


class ToggleRequest(BaseModel):
    bucket_index: int = Field(alias="index")
    completed: bool

    model_config = ConfigDict(populate_by_name=True)


class ReminderTestRequest(BaseModel):
    custom_message: Optional[str] = Field(default=None, max_length=500)


__all__ = [
    "HabitCreate",
    "HabitUpdate",
    "ReminderSettingsUpdate",
    "ReminderTestRequest",
    "ToggleRequest",
]
