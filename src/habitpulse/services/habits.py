"""Caller-facing habit operations: CRUD, completions, streaks, stats and reminders."""

from __future__ import annotations

from contextlib import ExitStack
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..domain.repositories import HabitRepository, UserRepository
from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models.habit import Habit
from ..models.user import User
from ..schemas import HabitCreate, HabitUpdate, ReminderSettingsUpdate
from . import completions as completion_service
from .analytics import DashboardSummary, HabitStats, dashboard_summary, habit_stats
from .buckets import TickBox, generate_tick_boxes
from .locks import KeyedLocks
from .notifier import NotificationResult
from .streaks import StreakReport, compute_streak, recompute_habit_streak, streak_milestone

if TYPE_CHECKING:  # pragma: no cover
    from ..scheduler import ReminderScheduler

logger = get_logger("habits")

SchemaT = TypeVar("SchemaT", bound=BaseModel)
Payload = Union[BaseModel, Mapping[str, Any], None]


def parse_payload(schema: type[SchemaT], data: Payload) -> SchemaT:
    """Validate ``data`` against ``schema``, raising the domain ValidationError."""

    if isinstance(data, schema):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(data or {})
    except PydanticValidationError as exc:
        problems = []
        for error in exc.errors(include_url=False):
            field = ".".join(str(part) for part in error.get("loc", ())) or "payload"
            problems.append(f"{field}: {error.get('msg', 'Invalid value')}")
        raise ValidationError("; ".join(problems)) from exc


class HabitService:
    """Entry point for every habit operation a user can trigger.

    Mutations of one habit are serialised through ``locks`` so the
    read-modify-write of its completions and streak fields never interleaves.
    """

    def __init__(
        self,
        *,
        habit_repo: HabitRepository,
        user_repo: UserRepository,
        scheduler: Optional["ReminderScheduler"] = None,
        locks: Optional[KeyedLocks] = None,
        clock: Callable[[], datetime] = datetime.now,
        enforce_bucket_locks: bool = True,
    ):
        self.habit_repo = habit_repo
        self.user_repo = user_repo
        self.scheduler = scheduler
        self.locks = locks or (scheduler.locks if scheduler is not None else KeyedLocks())
        self.clock = clock
        self.enforce_bucket_locks = enforce_bucket_locks

    def _today(self) -> date:
        return self.clock().date()

    def _require_user(self, user_id: int) -> User:
        user = self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def _require_habit(self, habit_id: int, user_id: int) -> Habit:
        habit = self.habit_repo.get_by_id(habit_id, user_id=user_id)
        if habit is None:
            raise NotFoundError(f"Habit {habit_id} not found")
        return habit

    # CRUD ---------------------------------------------------------------------

    def create_habit(self, data: Payload, user_id: int) -> Habit:
        """Create a habit for ``user_id`` and arm its reminder when enabled."""
        payload = parse_payload(HabitCreate, data)
        self._require_user(user_id)

        habit = Habit(
            user_id=user_id,
            name=payload.name,
            frequency=payload.frequency.value,
            reminder_enabled=payload.reminder_enabled,
            reminder_time=payload.reminder_time,
            reminder_days=list(payload.reminder_days),
            reminder_message=payload.reminder_message or None,
        )
        saved = self.habit_repo.save(habit)
        logger.info("Created habit %s (%s) for user %s", saved.id, saved.frequency, user_id)

        if saved.reminder_enabled and self.scheduler is not None:
            self.scheduler.arm(saved)
        return saved

    def list_habits(self, user_id: int) -> list[Habit]:
        return self.habit_repo.list_for_user(user_id)

    def get_habit(self, habit_id: int, user_id: int) -> Habit:
        return self._require_habit(habit_id, user_id)

    def get_tick_boxes(self, habit_id: int, user_id: int) -> list[TickBox]:
        """Default tick-box window for the habit as of today."""
        habit = self._require_habit(habit_id, user_id)
        return generate_tick_boxes(habit.frequency, habit.completions, today=self._today())

    def update_habit(self, habit_id: int, user_id: int, update: Payload) -> Habit:
        """Change name and/or frequency; a frequency change recomputes the streak.

        Existing completion records are kept as they are when the frequency
        changes.
        """
        payload = parse_payload(HabitUpdate, update)
        with self.locks.hold(habit_id):
            habit = self._require_habit(habit_id, user_id)
            if payload.name is not None:
                habit.name = payload.name
            if payload.frequency is not None and payload.frequency.value != habit.frequency:
                logger.info(
                    "Habit %s frequency %s -> %s", habit_id, habit.frequency, payload.frequency.value
                )
                habit.frequency = payload.frequency.value
                recompute_habit_streak(habit, today=self._today())
            return self.habit_repo.save(habit)

    def delete_habit(self, habit_id: int, user_id: int) -> None:
        """Cancel the habit's reminder, then delete it with its completions."""
        with self.locks.hold(habit_id):
            habit = self._require_habit(habit_id, user_id)
            if self.scheduler is not None:
                self.scheduler.disarm(habit_id)
            self.habit_repo.delete(habit)
        self.locks.discard(habit_id)
        logger.info("Deleted habit %s for user %s", habit_id, user_id)

    def delete_user(self, user_id: int) -> int:
        """Delete a user with all their habits; returns how many habits went with them.

        Every reminder job of the user is disarmed before the rows are removed.
        """
        user = self._require_user(user_id)
        habit_ids = sorted(habit.id for habit in self.habit_repo.list_for_user(user_id))
        with ExitStack() as stack:
            # Always acquired in ascending id order
            for habit_id in habit_ids:
                stack.enter_context(self.locks.hold(habit_id))
            if self.scheduler is not None:
                for habit_id in habit_ids:
                    self.scheduler.disarm(habit_id)
            self.user_repo.delete(user)
        for habit_id in habit_ids:
            self.locks.discard(habit_id)
        logger.info("Deleted user %s and %d habit(s)", user_id, len(habit_ids))
        return len(habit_ids)

    # Completions and streaks --------------------------------------------------

    def toggle_completion(
        self, habit_id: int, user_id: int, bucket_index: int, completed: bool
    ) -> Habit:
        """Set one bucket's completion state and persist the recomputed streak.

        Raises:
            NotFoundError: habit missing or not owned by ``user_id``
            InvalidIndexError: ``bucket_index`` outside the default window
            BucketLockedError: the bucket is locked or missed and locks are enforced
        """
        with self.locks.hold(habit_id):
            habit = self._require_habit(habit_id, user_id)
            completion_service.toggle_completion(
                habit,
                bucket_index,
                completed,
                today=self._today(),
                enforce_locks=self.enforce_bucket_locks,
            )
            return self.habit_repo.save(habit)

    def get_streak(self, habit_id: int, user_id: int) -> StreakReport:
        habit = self._require_habit(habit_id, user_id)
        snapshot = compute_streak(habit.completions, habit.frequency, today=self._today())
        return StreakReport(snapshot=snapshot, milestone=streak_milestone(snapshot.current_streak))

    def get_stats(self, habit_id: int, user_id: int) -> HabitStats:
        habit = self._require_habit(habit_id, user_id)
        return habit_stats(habit, today=self._today())

    def get_dashboard_summary(self, user_id: int) -> DashboardSummary:
        return dashboard_summary(self.habit_repo.list_for_user(user_id), today=self._today())

    # Reminders ----------------------------------------------------------------

    def update_reminder_settings(self, habit_id: int, user_id: int, settings: Payload) -> Habit:
        """Apply the reminder fields present in ``settings`` and rearm or disarm."""
        changes = parse_payload(ReminderSettingsUpdate, settings).changes()
        with self.locks.hold(habit_id):
            habit = self._require_habit(habit_id, user_id)
            for key, value in changes.items():
                if key == "reminder_message":
                    value = value or None
                setattr(habit, key, value)
            saved = self.habit_repo.save(habit)

            if self.scheduler is not None:
                if saved.reminder_enabled:
                    self.scheduler.rearm(saved)
                else:
                    self.scheduler.disarm(habit_id)

        logger.info("Updated reminder settings for habit %s: %s", habit_id, sorted(changes))
        return saved

    def test_reminder(
        self, habit_id: int, user_id: int, custom_message: Optional[str] = None
    ) -> NotificationResult:
        """Send a reminder right now regardless of schedule and history."""
        if self.scheduler is None:
            raise RuntimeError("Reminder scheduler is not configured")
        habit = self._require_habit(habit_id, user_id)
        user = self._require_user(user_id)
        return self.scheduler.send_test(habit, user, custom_message=custom_message)


__all__ = ["HabitService", "parse_payload"]
