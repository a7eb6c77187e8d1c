"""Completion reconciliation: map a tick-box index onto a stored completion record."""

from __future__ import annotations

from datetime import date

from ..errors import BucketLockedError, InvalidIndexError
from ..logging_config import get_logger
from ..models.habit import Habit, HabitCompletion
from .buckets import TickBox, completion_date, generate_tick_boxes
from .streaks import recompute_habit_streak

logger = get_logger("completions")


def resolve_bucket(habit: Habit, bucket_index: int, *, today: date) -> TickBox:
    """Return the tick box at ``bucket_index`` of the habit's default window.

    The window is rebuilt from the habit and ``today`` alone so the index means
    the same bucket the client was shown.
    """

    boxes = generate_tick_boxes(habit.frequency, habit.completions, today=today)
    if bucket_index < 0 or bucket_index >= len(boxes):
        raise InvalidIndexError(bucket_index, len(boxes))
    return boxes[bucket_index]


def upsert_completion(habit: Habit, box: TickBox, completed: bool) -> HabitCompletion:
    """Insert or overwrite the record keyed by ``box.date``; at most one per date."""

    for record in habit.completions:
        if completion_date(record) == box.date:
            record.is_completed = completed
            if not record.label:
                record.label = box.label
            return record

    record = HabitCompletion(bucket_date=box.date, is_completed=completed, label=box.label)
    habit.completions.append(record)
    return record


def toggle_completion(
    habit: Habit,
    bucket_index: int,
    completed: bool,
    *,
    today: date,
    enforce_locks: bool = True,
) -> HabitCompletion:
    """Set the completion state of one bucket and recompute the habit's streak.

    Args:
        habit: Habit with its completions loaded; mutated in place
        bucket_index: Index into the default tick-box window
        completed: Desired completion state
        today: Reference day used to rebuild the window
        enforce_locks: Reject future (locked) and missed buckets

    Returns:
        The inserted or updated completion record

    Raises:
        InvalidIndexError: ``bucket_index`` is outside the window
        BucketLockedError: the bucket is locked or missed and locks are enforced
    """
    box = resolve_bucket(habit, bucket_index, today=today)

    if enforce_locks and (box.is_locked or box.is_missed):
        state = "locked" if box.is_locked else "missed"
        raise BucketLockedError(f"Bucket {box.label} is {state} and can not be changed")

    record = upsert_completion(habit, box, completed)
    snapshot = recompute_habit_streak(habit, today=today)
    logger.debug(
        "Toggled habit %s bucket %s to %s (streak %s)",
        habit.id,
        box.date.isoformat(),
        completed,
        snapshot.current_streak,
    )
    return record


__all__ = ["resolve_bucket", "toggle_completion", "upsert_completion"]
