"""Tick-box generation: canonical time buckets for a habit's cadence.

A habit's frequency maps onto a gapless sequence of canonical bucket dates:

* daily   - one bucket per calendar day
* weekly  - one bucket per ISO week, keyed by its Monday
* monthly - one bucket per calendar month, keyed by its first day

Everything here is pure calendar arithmetic on ``datetime.date`` values. The
caller passes ``today`` explicitly, so identical inputs always produce an
identical sequence and a bucket's index can be used as its address.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Iterator, Optional

from ..models.habit import Frequency

DAILY_BUCKETS = 30
WEEKLY_BUCKETS = 12
MONTHLY_BUCKETS = 12


@dataclass(frozen=True, slots=True)
class BucketWindow:
    """Inclusive date range a tick-box sequence is generated for."""

    start: date
    end: date


@dataclass(frozen=True, slots=True)
class TickBox:
    """One addressable bucket of a habit's cadence. Derived, never persisted."""

    date: date
    label: str
    is_completed: bool
    is_locked: bool
    is_missed: bool
    completion_id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "label": self.label,
            "is_completed": self.is_completed,
            "is_locked": self.is_locked,
            "is_missed": self.is_missed,
            "completion_id": self.completion_id,
        }


def normalize_frequency(value: Any) -> Optional[Frequency]:
    """Return the ``Frequency`` for ``value`` or None when it is not a known cadence."""

    try:
        return Frequency(value)
    except ValueError:
        return None


def coerce_date(value: Any) -> Optional[date]:
    """Normalise stored completion dates; malformed values become None instead of raising."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def completion_date(record: Any) -> Optional[date]:
    return coerce_date(getattr(record, "bucket_date", None))


def week_start(value: date) -> date:
    """Monday of the week containing ``value`` (Sunday belongs to the previous Monday)."""

    return value - timedelta(days=value.weekday())


def month_start(value: date) -> date:
    return value.replace(day=1)


def add_months(value: date, months: int) -> date:
    """Return the first day of the month ``months`` away from ``value``'s month."""

    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def canonical_date(frequency: Any, value: date) -> date:
    """Return the bucket key ``value`` falls into for ``frequency``."""

    freq = normalize_frequency(frequency)
    if freq is Frequency.WEEKLY:
        return week_start(value)
    if freq is Frequency.MONTHLY:
        return month_start(value)
    return value


def day_label(value: date) -> str:
    return f"{value:%a}, {value:%b} {value.day}"


def week_label(value: date) -> str:
    iso_year, iso_week, _ = value.isocalendar()
    return f"Week {iso_week}, {iso_year}"


def month_label(value: date) -> str:
    return f"{value:%B} {value.year}"


def bucket_label(frequency: Any, value: date) -> str:
    freq = normalize_frequency(frequency)
    if freq is Frequency.WEEKLY:
        return week_label(value)
    if freq is Frequency.MONTHLY:
        return month_label(value)
    return day_label(value)


def default_window(frequency: Any, today: date) -> Optional[BucketWindow]:
    """Window the tick boxes are displayed (and addressed) with; None for custom cadences."""

    freq = normalize_frequency(frequency)
    if freq is Frequency.DAILY:
        return BucketWindow(today, today + timedelta(days=DAILY_BUCKETS - 1))
    if freq is Frequency.WEEKLY:
        start = week_start(today)
        return BucketWindow(start, start + timedelta(weeks=WEEKLY_BUCKETS - 1))
    if freq is Frequency.MONTHLY:
        start = month_start(today)
        return BucketWindow(start, add_months(start, MONTHLY_BUCKETS - 1))
    return None


def bucket_dates(frequency: Any, window: BucketWindow) -> Iterator[date]:
    """Yield every canonical bucket date of ``window`` in ascending order."""

    freq = normalize_frequency(frequency)
    if freq is Frequency.DAILY:
        cursor = window.start
        while cursor <= window.end:
            yield cursor
            cursor += timedelta(days=1)
    elif freq is Frequency.WEEKLY:
        cursor = week_start(window.start)
        while cursor <= window.end:
            yield cursor
            cursor += timedelta(weeks=1)
    elif freq is Frequency.MONTHLY:
        cursor = month_start(window.start)
        while cursor <= window.end:
            yield cursor
            cursor = add_months(cursor, 1)


def index_completions(completions: Iterable[Any]) -> dict[date, Any]:
    """Map bucket date to record; the earliest inserted record wins on duplicates."""

    by_date: dict[date, Any] = {}
    for record in completions or ():
        key = completion_date(record)
        if key is not None:
            by_date.setdefault(key, record)
    return by_date


def generate_tick_boxes(
    frequency: Any,
    completions: Iterable[Any],
    *,
    today: date,
    window: Optional[BucketWindow] = None,
) -> list[TickBox]:
    """Build the ordered tick-box sequence for a habit.

    Args:
        frequency: Habit cadence (``Frequency`` or its string value)
        completions: Stored completion records, any order
        today: Reference day for the locked/missed flags
        window: Optional explicit range; defaults to ``default_window``

    Returns:
        One ``TickBox`` per canonical date in the window. Custom and unknown
        cadences are not bucketed and yield an empty list.
    """
    freq = normalize_frequency(frequency)
    if freq is None or freq is Frequency.CUSTOM:
        return []

    today = coerce_date(today) or today
    window = window or default_window(freq, today)
    if window is None:
        return []

    current = canonical_date(freq, today)
    by_date = index_completions(completions)

    boxes: list[TickBox] = []
    for bucket in bucket_dates(freq, window):
        record = by_date.get(bucket)
        completed = bool(record.is_completed) if record is not None else False
        label = getattr(record, "label", "") if record is not None else ""
        boxes.append(
            TickBox(
                date=bucket,
                label=label or bucket_label(freq, bucket),
                is_completed=completed,
                is_locked=bucket > current,
                is_missed=bucket < current and not completed,
                completion_id=getattr(record, "id", None),
            )
        )
    return boxes


__all__ = [
    "BucketWindow",
    "TickBox",
    "add_months",
    "bucket_dates",
    "bucket_label",
    "canonical_date",
    "coerce_date",
    "completion_date",
    "default_window",
    "generate_tick_boxes",
    "index_completions",
    "month_start",
    "normalize_frequency",
    "week_start",
]
