"""Tests for the reminder scheduler registry and trigger fires.

Fires are invoked directly with an explicit ``now``; the background thread is
only started by the start/shutdown test.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import FakeNotifier
from habitpulse.errors import PersistenceError, ValidationError
from habitpulse.scheduler import ReminderScheduler
from habitpulse.services.reminders import ReminderOutcome

NOW = datetime(2026, 10, 14, 9, 0)


@pytest.fixture
def reminder_habit(habit_factory):
    def _create(**fields):
        fields.setdefault("reminder_enabled", True)
        fields.setdefault("reminder_time", "09:00")
        return habit_factory(**fields)

    return _create


class TestRegistry:
    def test_arm_registers_one_job(self, scheduler, reminder_habit):
        habit = reminder_habit(name="Walk")

        assert scheduler.arm(habit) is True
        assert scheduler.is_armed(habit.id)

        jobs = scheduler.active_jobs()
        assert [job["job_id"] for job in jobs] == [f"habit-reminder-{habit.id}"]
        assert jobs[0]["name"] == "Reminder: Walk"

    def test_rearming_never_duplicates_jobs(self, scheduler, reminder_habit):
        habit = reminder_habit()

        scheduler.arm(habit)
        scheduler.arm(habit)
        habit.reminder_time = "18:30"
        scheduler.rearm(habit)

        assert len(scheduler.scheduler.get_jobs()) == 1
        assert len(scheduler.active_jobs()) == 1

    def test_arm_disabled_habit_leaves_nothing_armed(self, scheduler, reminder_habit):
        habit = reminder_habit()
        scheduler.arm(habit)

        habit.reminder_enabled = False
        assert scheduler.arm(habit) is False
        assert not scheduler.is_armed(habit.id)
        assert scheduler.scheduler.get_jobs() == []

    def test_arm_requires_saved_habit(self, scheduler):
        from habitpulse.models import Habit

        with pytest.raises(ValueError):
            scheduler.arm(Habit(user_id=1, name="Unsaved", reminder_enabled=True))

    def test_disarm(self, scheduler, reminder_habit):
        habit = reminder_habit()
        scheduler.arm(habit)

        assert scheduler.disarm(habit.id) is True
        assert scheduler.disarm(habit.id) is False
        assert scheduler.scheduler.get_job(ReminderScheduler.job_id(habit.id)) is None

    def test_rearm_with_reminders_off_disarms(self, scheduler, reminder_habit):
        habit = reminder_habit()
        scheduler.arm(habit)

        habit.reminder_enabled = False
        assert scheduler.rearm(habit) is False
        assert not scheduler.is_armed(habit.id)

    def test_sync_all_skips_admins_and_isolates_failures(
        self, scheduler, reminder_habit, habit_factory, user_factory, caplog
    ):
        admin = user_factory("admin@example.com", is_admin=True)
        first = reminder_habit(name="First")
        second = reminder_habit(name="Second", reminder_days=[1, 3])
        broken = reminder_habit(name="Broken", reminder_time="99:99")
        admin_habit = reminder_habit(name="Admin", owner=admin)
        quiet = habit_factory(name="Quiet")

        with caplog.at_level(logging.ERROR, logger="habitpulse.scheduler"):
            armed = scheduler.sync_all()

        assert armed == 2
        assert scheduler.is_armed(first.id)
        assert scheduler.is_armed(second.id)
        assert not scheduler.is_armed(broken.id)
        assert not scheduler.is_armed(admin_habit.id)
        assert not scheduler.is_armed(quiet.id)
        assert any("Broken" in r.getMessage() or str(broken.id) in r.getMessage() for r in caplog.records)

    def test_sync_all_drops_stale_jobs(self, scheduler, reminder_habit, habit_repo):
        habit = reminder_habit()
        scheduler.arm(habit)
        habit_repo.delete(habit)

        assert scheduler.sync_all() == 0
        assert not scheduler.is_armed(habit.id)

    def test_start_and_shutdown(self, scheduler, reminder_habit):
        habit = reminder_habit(reminder_time="03:00")
        scheduler.arm(habit)

        scheduler.start()
        try:
            assert scheduler.running
            assert scheduler.active_jobs()[0]["next_run_time"] is not None
        finally:
            scheduler.shutdown(wait=False)

        assert not scheduler.running


class TestFire:
    def test_sends_and_stamps_last_reminder_sent(self, scheduler, notifier, reminder_habit, habit_repo):
        habit = reminder_habit()

        assert scheduler.fire(habit.id, now=NOW) is ReminderOutcome.SENT

        assert len(notifier.calls) == 1
        assert notifier.calls[0]["is_test"] is False
        assert habit_repo.get_by_id(habit.id).last_reminder_sent == NOW

    def test_second_fire_same_day_is_skipped(self, scheduler, notifier, reminder_habit):
        habit = reminder_habit()
        scheduler.fire(habit.id, now=NOW)

        outcome = scheduler.fire(habit.id, now=NOW + timedelta(hours=3))

        assert outcome is ReminderOutcome.ALREADY_SENT
        assert len(notifier.calls) == 1

    def test_next_day_sends_again(self, scheduler, notifier, reminder_habit):
        habit = reminder_habit()
        scheduler.fire(habit.id, now=NOW)

        assert scheduler.fire(habit.id, now=NOW + timedelta(days=1)) is ReminderOutcome.SENT
        assert len(notifier.calls) == 2

    def test_completed_today_is_skipped(self, scheduler, notifier, reminder_habit):
        habit = reminder_habit(completions=[(NOW.date(), True)])

        assert scheduler.fire(habit.id, now=NOW) is ReminderOutcome.ALREADY_COMPLETED
        assert notifier.calls == []

    def test_wrong_weekday_is_skipped(self, scheduler, notifier, reminder_habit):
        habit = reminder_habit(reminder_days=[0, 6])

        assert scheduler.fire(habit.id, now=NOW) is ReminderOutcome.NOT_SCHEDULED_TODAY
        assert notifier.calls == []

    def test_failed_send_leaves_state_unchanged(
        self, habit_repo, user_repo, reminder_habit, caplog
    ):
        failing = FakeNotifier(success=False, error="mailbox unavailable")
        sched = ReminderScheduler(habit_repo=habit_repo, user_repo=user_repo, notifier=failing)
        habit = reminder_habit()

        with caplog.at_level(logging.ERROR, logger="habitpulse.scheduler"):
            assert sched.fire(habit.id, now=NOW) is ReminderOutcome.FAILED

        assert habit_repo.get_by_id(habit.id).last_reminder_sent is None
        assert any("mailbox unavailable" in r.getMessage() for r in caplog.records)
        # A later trigger retries
        assert sched.fire(habit.id, now=NOW + timedelta(minutes=5)) is ReminderOutcome.FAILED
        assert len(failing.calls) == 2

    def test_raising_notifier_is_contained(self, habit_repo, user_repo, reminder_habit):
        raising = FakeNotifier(raises=TimeoutError("smtp timed out"))
        sched = ReminderScheduler(habit_repo=habit_repo, user_repo=user_repo, notifier=raising)
        habit = reminder_habit()

        assert sched.fire(habit.id, now=NOW) is ReminderOutcome.FAILED

    def test_missing_habit_is_disarmed(self, scheduler, reminder_habit, habit_repo):
        habit = reminder_habit()
        scheduler.arm(habit)
        habit_repo.delete(habit)

        assert scheduler.fire(habit.id, now=NOW) is ReminderOutcome.NOT_FOUND
        assert not scheduler.is_armed(habit.id)

    def test_repository_failure_is_logged_not_raised(self, user_repo, notifier, caplog):
        class BrokenRepo:
            def get_by_id(self, habit_id, *, user_id=None):
                raise PersistenceError("database is locked")

        sched = ReminderScheduler(habit_repo=BrokenRepo(), user_repo=user_repo, notifier=notifier)

        with caplog.at_level(logging.ERROR, logger="habitpulse.scheduler"):
            assert sched.fire(42, now=NOW) is ReminderOutcome.ERROR

        assert caplog.records[-1].exc_info is not None

    def test_fire_uses_clock_when_now_missing(self, scheduler, clock, reminder_habit, habit_repo):
        habit = reminder_habit()

        scheduler.fire(habit.id)

        assert habit_repo.get_by_id(habit.id).last_reminder_sent == clock.now


class TestSendTest:
    def test_bypasses_guards_and_does_not_stamp(
        self, scheduler, notifier, reminder_habit, habit_repo, user
    ):
        habit = reminder_habit(
            reminder_enabled=False,
            completions=[(NOW.date(), True)],
            last_reminder_sent=NOW - timedelta(minutes=1),
        )

        result = scheduler.send_test(habit, user, custom_message="You've got this")

        assert result.success is True
        assert notifier.calls[0]["is_test"] is True
        assert notifier.calls[0]["message_override"] == "You've got this"
        assert habit_repo.get_by_id(habit.id).last_reminder_sent == NOW - timedelta(minutes=1)

    def test_failure_is_returned(self, habit_repo, user_repo, reminder_habit, user):
        sched = ReminderScheduler(
            habit_repo=habit_repo, user_repo=user_repo, notifier=FakeNotifier(success=False)
        )

        result = sched.send_test(reminder_habit(), user)

        assert result.success is False
        assert result.error == "delivery failed"


class TestReminderTimezone:
    """Fires are judged on the calendar day of the configured reminder zone."""

    ZONE = "Pacific/Kiritimati"  # UTC+14

    @pytest.fixture
    def zoned(self, habit_repo, user_repo, notifier):
        sched = ReminderScheduler(
            habit_repo=habit_repo, user_repo=user_repo, notifier=notifier, timezone=self.ZONE
        )
        yield sched
        sched.shutdown(wait=False)

    def test_default_clock_follows_zone(self, zoned):
        now = zoned.clock()

        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(hours=14)

    def test_weekday_comes_from_reminder_zone(self, zoned, notifier, reminder_habit, habit_repo):
        # Wednesday 09:00 in Kiritimati is still Tuesday 19:00 in UTC
        habit = reminder_habit(reminder_days=[3])
        fire_instant = datetime(2026, 10, 13, 19, 0, tzinfo=timezone.utc)

        assert zoned.fire(habit.id, now=fire_instant) is ReminderOutcome.SENT

        assert len(notifier.calls) == 1
        stamped = habit_repo.get_by_id(habit.id).last_reminder_sent
        assert stamped == datetime(2026, 10, 14, 9, 0)

    def test_duplicate_guard_uses_zone_day(self, zoned, notifier, reminder_habit):
        habit = reminder_habit(reminder_days=[3, 4])
        zone = ZoneInfo(self.ZONE)
        zoned.fire(habit.id, now=datetime(2026, 10, 14, 9, 0, tzinfo=zone))

        later_same_day = datetime(2026, 10, 14, 23, 0, tzinfo=zone)
        next_day = datetime(2026, 10, 15, 9, 0, tzinfo=zone)

        assert zoned.fire(habit.id, now=later_same_day) is ReminderOutcome.ALREADY_SENT
        assert zoned.fire(habit.id, now=next_day) is ReminderOutcome.SENT
        assert len(notifier.calls) == 2


def test_arming_with_bad_settings_drops_the_old_job(scheduler, reminder_habit):
    habit = reminder_habit(reminder_time="07:00")
    scheduler.arm(habit)

    habit.reminder_time = "7am"
    with pytest.raises(ValidationError):
        scheduler.arm(habit)

    assert not scheduler.is_armed(habit.id)
    assert scheduler.scheduler.get_jobs() == []
