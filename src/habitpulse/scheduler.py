"""Background reminder scheduling: one cron job per reminder-enabled habit."""

from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Any, Callable, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from .domain.repositories import HabitRepository, UserRepository
from .errors import ValidationError
from .logging_config import get_logger
from .models.habit import Habit
from .models.user import User
from .services.locks import KeyedLocks
from .services.notifier import NotificationResult, Notifier
from .services.reminders import (
    ReminderOutcome,
    build_trigger,
    evaluate_reminder,
    resolve_zone,
    zone_clock,
)

logger = get_logger("scheduler")


class ReminderScheduler:
    """Arms, rearms and fires per-habit reminder jobs.

    A registry keyed by habit id mirrors the jobs held by APScheduler, so a
    habit never has more than one armed trigger. Fires run on the scheduler's
    thread pool and never raise.
    """

    JOB_PREFIX = "habit-reminder-"

    def __init__(
        self,
        *,
        habit_repo: HabitRepository,
        user_repo: UserRepository,
        notifier: Notifier,
        locks: Optional[KeyedLocks] = None,
        timezone: Optional[str] = None,
        max_workers: int = 10,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the scheduler.

        Args:
            habit_repo: Source of habit documents
            user_repo: Source of the reminder recipients
            notifier: Delivery channel for reminder emails
            locks: Per-habit locks shared with the habit service
            timezone: Zone the reminder times are expressed in; server local when None
            max_workers: Size of the thread pool running reminder fires
            clock: Returns the current time; defaults to the wall clock in ``timezone``
        """
        self.habit_repo = habit_repo
        self.user_repo = user_repo
        self.notifier = notifier
        self.locks = locks or KeyedLocks()
        self.timezone = timezone
        self.zone = resolve_zone(timezone)
        self.clock = clock or zone_clock(self.zone)

        options: dict[str, Any] = {
            "executors": {"default": ThreadPoolExecutor(max_workers)},
            "job_defaults": {"coalesce": True, "max_instances": 1},
        }
        if timezone:
            options["timezone"] = timezone
        self.scheduler = BackgroundScheduler(**options)

        self._jobs: dict[int, str] = {}
        self._registry_lock = Lock()

    @classmethod
    def job_id(cls, habit_id: int) -> str:
        return f"{cls.JOB_PREFIX}{habit_id}"

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def start(self) -> None:
        """Start firing armed jobs."""
        if self.running:
            logger.warning("Reminder scheduler already running")
            return
        self.scheduler.start()
        logger.info("Reminder scheduler started with %d armed habit(s)", len(self._jobs))

    def shutdown(self, *, wait: bool = True) -> None:
        """Stop the scheduler gracefully."""
        if self.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Reminder scheduler stopped")

    # Registry -----------------------------------------------------------------

    def arm(self, habit: Habit) -> bool:
        """Schedule ``habit``'s reminder, replacing any existing job.

        Returns False (and leaves nothing armed) when reminders are disabled.

        Raises:
            ValidationError: the stored reminder time is malformed
        """
        if habit.id is None:
            raise ValueError("Cannot arm a reminder for an unsaved habit")
        if not habit.reminder_enabled:
            self.disarm(habit.id)
            return False

        try:
            trigger = build_trigger(
                habit.reminder_time, habit.reminder_days, timezone=self.timezone
            )
        except ValidationError:
            # Never leave a job running on settings that no longer apply
            self.disarm(habit.id)
            raise
        job_id = self.job_id(habit.id)
        with self._registry_lock:
            self._remove_job_locked(habit.id)
            self.scheduler.add_job(
                func=self.fire,
                trigger=trigger,
                args=[habit.id],
                id=job_id,
                name=f"Reminder: {habit.name}",
                replace_existing=True,
            )
            self._jobs[habit.id] = job_id

        logger.info(
            "Armed reminder for habit %s at %s (days=%s)",
            habit.id,
            habit.reminder_time,
            list(habit.reminder_days or []) or "every day",
        )
        return True

    def disarm(self, habit_id: int) -> bool:
        """Cancel the habit's reminder job; True when one was armed."""
        with self._registry_lock:
            removed = self._remove_job_locked(habit_id)
        if removed:
            logger.info("Disarmed reminder for habit %s", habit_id)
        return removed

    def rearm(self, habit: Habit) -> bool:
        """Disarm then arm again when reminders are still enabled."""
        if habit.id is not None:
            self.disarm(habit.id)
        if not habit.reminder_enabled:
            return False
        return self.arm(habit)

    def _remove_job_locked(self, habit_id: int) -> bool:
        job_id = self._jobs.pop(habit_id, None)
        if job_id is None:
            return False
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            logger.debug("Reminder job %s was already gone", job_id)
        return True

    def is_armed(self, habit_id: int) -> bool:
        with self._registry_lock:
            return habit_id in self._jobs

    def active_jobs(self) -> list[dict[str, Any]]:
        """Describe the armed reminder jobs."""
        with self._registry_lock:
            armed = dict(self._jobs)
        jobs = []
        for habit_id, job_id in sorted(armed.items()):
            job = self.scheduler.get_job(job_id)
            next_run = getattr(job, "next_run_time", None) if job else None
            jobs.append(
                {
                    "habit_id": habit_id,
                    "job_id": job_id,
                    "name": job.name if job else None,
                    "next_run_time": next_run.isoformat() if next_run else None,
                }
            )
        return jobs

    def sync_all(self) -> int:
        """Rebuild the registry from storage; returns how many habits were armed.

        Habits owned by admin users are skipped. A habit that fails to arm is
        logged and does not stop the others.
        """
        with self._registry_lock:
            for habit_id in list(self._jobs):
                self._remove_job_locked(habit_id)

        habits = self.habit_repo.list_with_reminders_enabled(include_admin=False)
        armed = 0
        for habit in habits:
            try:
                if self.arm(habit):
                    armed += 1
            except Exception as exc:
                logger.error("Failed to arm reminder for habit %s: %s", habit.id, exc, exc_info=True)

        logger.info("Initialized reminders for %d of %d habit(s)", armed, len(habits))
        return armed

    # Delivery -----------------------------------------------------------------

    def _deliver(
        self,
        habit: Habit,
        user: User,
        *,
        is_test: bool = False,
        message_override: Optional[str] = None,
    ) -> NotificationResult:
        try:
            return self.notifier.send(
                habit, user, is_test=is_test, message_override=message_override
            )
        except Exception as exc:
            logger.error("Notifier raised for habit %s: %s", habit.id, exc, exc_info=True)
            return NotificationResult(success=False, error=str(exc) or exc.__class__.__name__)

    def fire(self, habit_id: int, *, now: Optional[datetime] = None) -> ReminderOutcome:
        """Run one trigger fire for ``habit_id``.

        Re-reads the habit, applies the skip rules, sends, and stamps
        ``last_reminder_sent`` only after a successful send.
        """
        now = now or self.clock()
        if self.zone is not None and now.tzinfo is not None:
            now = now.astimezone(self.zone)
        try:
            habit = self.habit_repo.get_by_id(habit_id)
            if habit is None:
                logger.warning("Reminder fired for missing habit %s; disarming", habit_id)
                self.disarm(habit_id)
                return ReminderOutcome.NOT_FOUND

            decision = evaluate_reminder(habit, now=now)
            if not decision.should_send:
                logger.debug("Skipping reminder for habit %s: %s", habit_id, decision.reason.value)
                return decision.reason

            user = self.user_repo.get_by_id(habit.user_id)
            if user is None:
                logger.warning("Reminder for habit %s has no owner %s", habit_id, habit.user_id)
                return ReminderOutcome.NOT_FOUND

            result = self._deliver(habit, user)
            if not result.success:
                logger.error("Reminder for habit %s failed: %s", habit_id, result.error)
                return ReminderOutcome.FAILED

            with self.locks.hold(habit_id):
                fresh = self.habit_repo.get_by_id(habit_id)
                if fresh is not None:
                    # Stored as wall-clock time in the reminder timezone
                    fresh.last_reminder_sent = now.replace(tzinfo=None)
                    self.habit_repo.save(fresh)

            logger.info("Reminder sent for habit %s (%s)", habit_id, result.message_id)
            return ReminderOutcome.SENT
        except Exception as exc:
            logger.error("Reminder fire for habit %s failed: %s", habit_id, exc, exc_info=True)
            return ReminderOutcome.ERROR

    def send_test(
        self, habit: Habit, user: User, *, custom_message: Optional[str] = None
    ) -> NotificationResult:
        """Send a test reminder immediately, bypassing every skip rule."""
        result = self._deliver(habit, user, is_test=True, message_override=custom_message)
        if result.success:
            logger.info("Test reminder sent for habit %s", habit.id)
        else:
            logger.warning("Test reminder for habit %s failed: %s", habit.id, result.error)
        return result


__all__ = ["ReminderScheduler"]
