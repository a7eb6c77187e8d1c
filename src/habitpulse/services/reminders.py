"""Reminder schedule derivation and the send/skip decision for a trigger fire."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from enum import Enum
from typing import Any, Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from apscheduler.triggers.cron import CronTrigger

from ..errors import ValidationError
from ..models.habit import Habit
from .buckets import canonical_date, completion_date

# Index 0 is Sunday, matching the stored reminder_days convention.
CRON_DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
_TIME_PATTERN = re.compile(r"^(?P<hour>[01]?\d|2[0-3]):(?P<minute>[0-5]\d)$")


class ReminderOutcome(str, Enum):
    """What a single trigger fire did for a habit."""

    SENT = "sent"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    DISABLED = "disabled"
    NOT_SCHEDULED_TODAY = "not_scheduled_today"
    ALREADY_SENT = "already_sent"
    ALREADY_COMPLETED = "already_completed"
    ERROR = "error"


def parse_reminder_time(value: str) -> tuple[int, int]:
    """Split ``"HH:MM"`` into (hour, minute)."""

    match = _TIME_PATTERN.match((value or "").strip())
    if match is None:
        raise ValidationError(f"Reminder time must use HH:MM format, got {value!r}")
    return int(match["hour"]), int(match["minute"])


def normalize_reminder_days(days: Optional[Iterable[Any]]) -> list[int]:
    """Return sorted unique weekday indices (0 = Sunday .. 6 = Saturday)."""

    normalized: set[int] = set()
    for day in days or ():
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise ValidationError(f"Reminder days must be integers 0-6, got {day!r}")
        normalized.add(day)
    return sorted(normalized)


def weekday_index(value: date) -> int:
    """Weekday of ``value`` with Sunday as 0."""

    return value.isoweekday() % 7


def cron_day_of_week(days: Optional[Iterable[int]]) -> str:
    normalized = normalize_reminder_days(days)
    if not normalized:
        return "*"
    return ",".join(CRON_DAY_NAMES[day] for day in normalized)


def build_trigger(
    reminder_time: str, days: Optional[Iterable[int]] = None, *, timezone: Any = None
) -> CronTrigger:
    """Cron trigger firing at ``reminder_time`` on ``days`` (every day when empty)."""

    hour, minute = parse_reminder_time(reminder_time)
    return CronTrigger(
        hour=hour,
        minute=minute,
        day_of_week=cron_day_of_week(days),
        timezone=timezone,
    )


def resolve_zone(timezone: Any) -> Optional[tzinfo]:
    """Turn a zone name into a tzinfo; None or "" means server local time."""

    if not timezone:
        return None
    if isinstance(timezone, str):
        return ZoneInfo(timezone)
    return timezone


def zone_clock(timezone: Any = None) -> Callable[[], datetime]:
    """Clock returning the current time in ``timezone`` (naive server local when None)."""

    zone = resolve_zone(timezone)
    if zone is None:
        return datetime.now
    return lambda: datetime.now(zone)


def _align(value: datetime, reference: datetime) -> datetime:
    """Make ``value`` comparable with ``reference``.

    A naive ``value`` is wall-clock time in the zone of ``reference``; an aware
    one compared against a naive ``reference`` is converted to server local time.
    """

    if reference.tzinfo is None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    if reference.tzinfo is not None and value.tzinfo is None:
        return value.replace(tzinfo=reference.tzinfo)
    return value


@dataclass(frozen=True, slots=True)
class ReminderDecision:
    should_send: bool
    reason: Optional[ReminderOutcome] = None


def reminder_skip_reason(habit: Habit, *, now: datetime) -> Optional[ReminderOutcome]:
    """Return why a scheduled fire at ``now`` must not send, or None to send.

    Checks run in order: reminders disabled, weekday not configured, a reminder
    already went out since the start of today, today's bucket already completed.
    """
    if not habit.reminder_enabled:
        return ReminderOutcome.DISABLED

    today = now.date()
    days = habit.reminder_days or []
    if days and weekday_index(today) not in days:
        return ReminderOutcome.NOT_SCHEDULED_TODAY

    if habit.last_reminder_sent is not None:
        start_of_today = datetime.combine(today, time.min, tzinfo=now.tzinfo)
        if _align(habit.last_reminder_sent, now) >= start_of_today:
            return ReminderOutcome.ALREADY_SENT

    bucket_today = canonical_date(habit.frequency, today)
    for record in habit.completions or ():
        if record.is_completed and completion_date(record) == bucket_today:
            return ReminderOutcome.ALREADY_COMPLETED

    return None


def evaluate_reminder(habit: Habit, *, now: datetime) -> ReminderDecision:
    reason = reminder_skip_reason(habit, now=now)
    return ReminderDecision(should_send=reason is None, reason=reason)


__all__ = [
    "CRON_DAY_NAMES",
    "ReminderDecision",
    "ReminderOutcome",
    "build_trigger",
    "cron_day_of_week",
    "evaluate_reminder",
    "normalize_reminder_days",
    "parse_reminder_time",
    "reminder_skip_reason",
    "resolve_zone",
    "weekday_index",
    "zone_clock",
]
