"""Streak calculations over a habit's completion history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional

from ..models.habit import Frequency, Habit
from .buckets import coerce_date, completion_date, normalize_frequency

# Approximate days between two buckets; monthly is not calendar-accurate.
EXPECTED_INTERVAL_DAYS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
    Frequency.MONTHLY: 30,
}
GRACE_DAYS = 1

# Largest gap linking two completed records into one streak; a skipped day
# always breaks a daily chain.
LINK_TOLERANCE_DAYS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7 + GRACE_DAYS,
    Frequency.MONTHLY: 30 + GRACE_DAYS,
}


@dataclass(slots=True)
class StreakSnapshot:
    """Result of a full-history streak recompute."""

    current_streak: int = 0
    longest_streak: int = 0
    last_completed_date: Optional[date] = None
    streak_start_date: Optional[date] = None
    is_streak_active: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_completed_date": (
                self.last_completed_date.isoformat() if self.last_completed_date else None
            ),
            "streak_start_date": (
                self.streak_start_date.isoformat() if self.streak_start_date else None
            ),
            "is_streak_active": self.is_streak_active,
        }


@dataclass(frozen=True, slots=True)
class Milestone:
    days: int
    title: str

    def to_dict(self) -> dict[str, Any]:
        return {"days": self.days, "title": self.title}


MILESTONES: tuple[Milestone, ...] = (
    Milestone(7, "Week Warrior"),
    Milestone(14, "Two Week Champion"),
    Milestone(30, "Month Master"),
    Milestone(60, "Two Month Legend"),
    Milestone(100, "Century Achiever"),
    Milestone(365, "Year Long Hero"),
)


@dataclass(slots=True)
class MilestoneStatus:
    current: Optional[Milestone]
    next: Optional[Milestone]
    is_at_milestone: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current.to_dict() if self.current else None,
            "next": self.next.to_dict() if self.next else None,
            "is_at_milestone": self.is_at_milestone,
        }


@dataclass(slots=True)
class StreakReport:
    """Streak snapshot paired with milestone progress, as shown to the user."""

    snapshot: StreakSnapshot
    milestone: MilestoneStatus

    def to_dict(self) -> dict[str, Any]:
        return {**self.snapshot.to_dict(), "milestone": self.milestone.to_dict()}


def expected_interval(frequency: Any) -> int:
    """Days expected between completions; unknown cadences count as daily."""

    freq = normalize_frequency(frequency)
    return EXPECTED_INTERVAL_DAYS.get(freq, 1)


def link_tolerance(frequency: Any) -> int:
    freq = normalize_frequency(frequency)
    return LINK_TOLERANCE_DAYS.get(freq, 1)


def days_between(first: date, second: date) -> int:
    return abs((second - first).days)


def compute_streak(
    completions: Iterable[Any], frequency: Any, *, today: date
) -> StreakSnapshot:
    """Recompute streak state from the full completion history.

    Only completed records count. The streak is active while the most recent
    completion is within one expected interval plus a grace day of ``today``;
    from there the chain walks back through older completions until a gap
    exceeds the link tolerance. The longest streak is an independent scan of
    the same sorted history and is never below the current streak.

    Args:
        completions: Completion records (any order, malformed dates skipped)
        frequency: Habit cadence
        today: Reference day

    Returns:
        StreakSnapshot with current/longest counts and chain dates
    """
    today = coerce_date(today) or today
    completed = sorted(
        (
            day
            for day in (completion_date(record) for record in completions or () if record.is_completed)
            if day is not None
        ),
        reverse=True,
    )
    if not completed:
        return StreakSnapshot()

    active_window = expected_interval(frequency) + GRACE_DAYS
    tolerance = link_tolerance(frequency)
    links = list(zip(completed, completed[1:]))

    snapshot = StreakSnapshot()
    most_recent = completed[0]
    snapshot.is_streak_active = days_between(most_recent, today) <= active_window

    if snapshot.is_streak_active:
        snapshot.current_streak = 1
        snapshot.last_completed_date = most_recent
        snapshot.streak_start_date = most_recent
        for newer, older in links:
            if days_between(older, newer) > tolerance:
                break
            snapshot.current_streak += 1
            snapshot.streak_start_date = older

    longest = run = 1
    for newer, older in links:
        if days_between(older, newer) <= tolerance:
            run += 1
            longest = max(longest, run)
        else:
            run = 1

    snapshot.longest_streak = max(longest, snapshot.current_streak)
    return snapshot


def apply_streak(habit: Habit, snapshot: StreakSnapshot) -> None:
    """Copy the persisted streak fields of ``snapshot`` onto ``habit``."""

    habit.current_streak = snapshot.current_streak
    habit.longest_streak = snapshot.longest_streak
    habit.last_completed_date = snapshot.last_completed_date
    habit.streak_start_date = snapshot.streak_start_date


def recompute_habit_streak(habit: Habit, *, today: date) -> StreakSnapshot:
    snapshot = compute_streak(habit.completions, habit.frequency, today=today)
    apply_streak(habit, snapshot)
    return snapshot


def streak_milestone(streak_count: int) -> MilestoneStatus:
    """Return the highest reached and the next milestone for ``streak_count``."""

    achieved = [m for m in MILESTONES if streak_count >= m.days]
    upcoming = next((m for m in MILESTONES if streak_count < m.days), None)
    return MilestoneStatus(
        current=achieved[-1] if achieved else None,
        next=upcoming,
        is_at_milestone=any(m.days == streak_count for m in MILESTONES),
    )


__all__ = [
    "MILESTONES",
    "Milestone",
    "MilestoneStatus",
    "StreakReport",
    "StreakSnapshot",
    "apply_streak",
    "compute_streak",
    "days_between",
    "expected_interval",
    "link_tolerance",
    "recompute_habit_streak",
    "streak_milestone",
]
