"""Completion statistics and dashboard rollups."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Sequence

from ..models.habit import Frequency, Habit
from .buckets import add_months, canonical_date, coerce_date, completion_date, month_start
from .streaks import compute_streak

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
TOP_PERFORMERS = 3


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(completed: int, total: int) -> int:
    """Integer percentage rounded half-up; 0 when there is nothing to measure."""

    if total <= 0:
        return 0
    return _round_half_up(Decimal(completed) * 100 / Decimal(total))


def _records_between(completions: Iterable[Any], start: date, end: date) -> list[Any]:
    rows = []
    for record in completions or ():
        day = completion_date(record)
        if day is not None and start <= day <= end:
            rows.append(record)
    return rows


def _completed_count(records: Iterable[Any]) -> int:
    return sum(1 for record in records if record.is_completed)


def completion_percentage(completions: Iterable[Any], *, today: date, days: int = 30) -> int:
    """Completed share of the records dated within the trailing ``days`` window."""

    today = coerce_date(today) or today
    records = _records_between(completions, today - timedelta(days=days), today)
    return percentage(_completed_count(records), len(records))


@dataclass(slots=True)
class TrendBucket:
    """Completed/total counts for one trailing week or month."""

    label: str
    start: date
    end: date
    completed: int
    total: int
    percentage: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "completed": self.completed,
            "total": self.total,
            "missed": self.total - self.completed,
            "percentage": self.percentage,
        }


def _trend_bucket(completions: Sequence[Any], label: str, start: date, end: date) -> TrendBucket:
    records = _records_between(completions, start, end)
    completed = _completed_count(records)
    return TrendBucket(
        label=label,
        start=start,
        end=end,
        completed=completed,
        total=len(records),
        percentage=percentage(completed, len(records)),
    )


def weekly_trends(completions: Iterable[Any], *, today: date, weeks: int = 4) -> list[TrendBucket]:
    """Trailing 7-day buckets, oldest first; the last one ends on ``today``."""

    today = coerce_date(today) or today
    rows = list(completions or ())
    trends = []
    for offset in range(weeks - 1, -1, -1):
        end = today - timedelta(weeks=offset)
        start = end - timedelta(days=6)
        trends.append(_trend_bucket(rows, f"Week {weeks - offset}", start, end))
    return trends


def monthly_performance(
    completions: Iterable[Any], *, today: date, months: int = 3
) -> list[TrendBucket]:
    """Trailing calendar months, oldest first; the last one is the current month."""

    today = coerce_date(today) or today
    rows = list(completions or ())
    current = month_start(today)
    performance = []
    for offset in range(months - 1, -1, -1):
        start = add_months(current, -offset)
        end = add_months(start, 1) - timedelta(days=1)
        performance.append(_trend_bucket(rows, f"{start:%b} {start.year}", start, end))
    return performance


def best_day_of_week(completions: Iterable[Any]) -> Optional[str]:
    """Weekday with the most completions; ties go to the earliest day from Sunday."""

    counts = [0] * 7
    for record in completions or ():
        day = completion_date(record)
        if record.is_completed and day is not None:
            counts[day.isoweekday() % 7] += 1
    best = max(counts)
    if best == 0:
        return None
    return WEEKDAY_NAMES[counts.index(best)]


@dataclass(slots=True)
class HabitOverview:
    total_days: int
    completed_days: int
    missed_days: int
    overall_percentage: int
    current_streak: int
    longest_streak: int
    last_completed: Optional[date]
    best_day_of_week: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_days": self.total_days,
            "completed_days": self.completed_days,
            "missed_days": self.missed_days,
            "overall_percentage": self.overall_percentage,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_completed": self.last_completed.isoformat() if self.last_completed else None,
            "best_day_of_week": self.best_day_of_week,
        }


@dataclass(slots=True)
class HabitStats:
    habit_id: Optional[int]
    habit_name: str
    frequency: str
    overview: HabitOverview
    last_7_days: int
    last_30_days: int
    weekly: list[TrendBucket] = field(default_factory=list)
    monthly: list[TrendBucket] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "habit_id": self.habit_id,
            "habit_name": self.habit_name,
            "frequency": self.frequency,
            "overview": self.overview.to_dict(),
            "time_frames": {"last_7_days": self.last_7_days, "last_30_days": self.last_30_days},
            "trends": {
                "weekly": [bucket.to_dict() for bucket in self.weekly],
                "monthly": [bucket.to_dict() for bucket in self.monthly],
            },
        }


def overall_percentage(habit: Habit) -> int:
    completions = list(habit.completions or ())
    return percentage(_completed_count(completions), len(completions))


def habit_stats(habit: Habit, *, today: date) -> HabitStats:
    """Full statistics snapshot for one habit."""

    completions = list(habit.completions or ())
    completed = _completed_count(completions)
    # Stored streak fields only change on a toggle; recompute them for today
    streak = compute_streak(completions, habit.frequency, today=today)
    completed_dates = [completion_date(r) for r in completions if r.is_completed]
    overview = HabitOverview(
        total_days=len(completions),
        completed_days=completed,
        missed_days=len(completions) - completed,
        overall_percentage=percentage(completed, len(completions)),
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        last_completed=max((d for d in completed_dates if d is not None), default=None),
        best_day_of_week=(
            best_day_of_week(completions) if habit.frequency == Frequency.DAILY else None
        ),
    )
    return HabitStats(
        habit_id=habit.id,
        habit_name=habit.name,
        frequency=habit.frequency,
        overview=overview,
        last_7_days=completion_percentage(completions, today=today, days=7),
        last_30_days=completion_percentage(completions, today=today, days=30),
        weekly=weekly_trends(completions, today=today),
        monthly=monthly_performance(completions, today=today),
    )


@dataclass(slots=True)
class HabitSummaryRow:
    id: Optional[int]
    name: str
    completion: int
    streak: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "completion": self.completion, "streak": self.streak}


@dataclass(slots=True)
class DashboardSummary:
    total_habits: int = 0
    active_streaks: int = 0
    completion_today: int = 0
    average_completion: int = 0
    top_performers: list[HabitSummaryRow] = field(default_factory=list)
    habit_stats: list[HabitSummaryRow] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_habits": self.total_habits,
            "active_streaks": self.active_streaks,
            "completion_today": self.completion_today,
            "average_completion": self.average_completion,
            "top_performers": [row.to_dict() for row in self.top_performers],
            "habit_stats": [row.to_dict() for row in self.habit_stats],
        }


def dashboard_summary(habits: Sequence[Habit], *, today: date) -> DashboardSummary:
    """Cross-habit summary for a user's dashboard.

    ``completion_today`` only considers habits holding a record for the bucket
    that contains ``today``; habits without one are left out of the ratio.
    """
    if not habits:
        return DashboardSummary()

    today = coerce_date(today) or today
    with_record_today = 0
    completed_today = 0
    active_streaks = 0
    rows: list[HabitSummaryRow] = []

    for habit in habits:
        bucket_today = canonical_date(habit.frequency, today)
        record = next(
            (r for r in habit.completions or () if completion_date(r) == bucket_today), None
        )
        if record is not None:
            with_record_today += 1
            if record.is_completed:
                completed_today += 1

        streak = compute_streak(
            habit.completions or (), habit.frequency, today=today
        ).current_streak
        if streak > 0:
            active_streaks += 1

        rows.append(
            HabitSummaryRow(
                id=habit.id,
                name=habit.name,
                completion=overall_percentage(habit),
                streak=streak,
            )
        )

    total_completion = sum(row.completion for row in rows)
    return DashboardSummary(
        total_habits=len(habits),
        active_streaks=active_streaks,
        completion_today=percentage(completed_today, with_record_today),
        average_completion=_round_half_up(Decimal(total_completion) / Decimal(len(rows))),
        # sorted() is stable: equal completion keeps the original habit order
        top_performers=sorted(rows, key=lambda row: row.completion, reverse=True)[:TOP_PERFORMERS],
        habit_stats=rows,
    )


__all__ = [
    "DashboardSummary",
    "HabitOverview",
    "HabitStats",
    "HabitSummaryRow",
    "TrendBucket",
    "best_day_of_week",
    "completion_percentage",
    "dashboard_summary",
    "habit_stats",
    "monthly_performance",
    "overall_percentage",
    "percentage",
    "weekly_trends",
]
