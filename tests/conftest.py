"""Pytest configuration and shared fixtures for HabitPulse tests.

Provides an isolated SQLite database per test, repositories bound to it,
user/habit factories, a recording notifier and a controllable clock so the
services can be exercised without touching the wall clock or a mail server.
"""

from __future__ import annotations

import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

import pytest
from sqlmodel import SQLModel, create_engine

from habitpulse.infra.database import create_session_factory
from habitpulse.infra.repositories import SQLModelHabitRepository, SQLModelUserRepository
from habitpulse.models import Habit, HabitCompletion, User
from habitpulse.scheduler import ReminderScheduler
from habitpulse.services.habits import HabitService
from habitpulse.services.notifier import NotificationResult

# Wednesday, ISO week 42 of 2026
TODAY = date(2026, 10, 14)


class FrozenClock:
    """Callable clock returning a fixed, manually advanced local time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


class FakeNotifier:
    """Notifier double recording every send."""

    def __init__(self, *, success: bool = True, error: Optional[str] = None, raises=None):
        self.success = success
        self.error = error
        self.raises = raises
        self.calls: list[dict] = []

    def send(self, habit, user, *, is_test=False, message_override=None) -> NotificationResult:
        self.calls.append(
            {
                "habit_id": habit.id,
                "user_id": user.id,
                "is_test": is_test,
                "message_override": message_override,
            }
        )
        if self.raises is not None:
            raise self.raises
        if not self.success:
            return NotificationResult(success=False, error=self.error or "delivery failed")
        return NotificationResult(success=True, message_id=f"fake-{len(self.calls)}")


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test."""

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(
        f"sqlite:///{db_path}", echo=False, connect_args={"check_same_thread": False}
    )
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching the one the application builds."""

    return create_session_factory(db_engine)


@pytest.fixture
def habit_repo(session_factory) -> SQLModelHabitRepository:
    return SQLModelHabitRepository(session_factory)


@pytest.fixture
def user_repo(session_factory) -> SQLModelUserRepository:
    return SQLModelUserRepository(session_factory)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def user_factory(user_repo):
    """Factory for persisted users."""

    counter = {"n": 0}

    def _create_user(email: str | None = None, *, is_admin: bool = False, name: str = "") -> User:
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        return user_repo.create(User(email=email, name=name or email.split("@")[0], is_admin=is_admin))

    return _create_user


@pytest.fixture
def user(user_factory) -> User:
    """Default owner for habits created in tests."""

    return user_factory("tester@example.com", name="Tester")


@pytest.fixture
def habit_factory(habit_repo, user):
    """Factory for persisted habits.

    ``completions`` is a list of ``(date, is_completed)`` pairs stored as-is,
    bypassing the reconciler so tests can set up arbitrary history.
    """

    def _create_habit(
        name: str = "Meditate",
        frequency: str = "daily",
        *,
        owner: User | None = None,
        completions: list[tuple[date, bool]] | None = None,
        **fields,
    ) -> Habit:
        owner = owner or user
        habit = Habit(user_id=owner.id, name=name, frequency=frequency, **fields)
        for day, completed in completions or []:
            habit.completions.append(HabitCompletion(bucket_date=day, is_completed=completed))
        return habit_repo.save(habit)

    return _create_habit


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 10, 14, 9, 0))


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def scheduler(habit_repo, user_repo, notifier, clock):
    """Reminder scheduler that is never started unless a test does so."""

    sched = ReminderScheduler(
        habit_repo=habit_repo,
        user_repo=user_repo,
        notifier=notifier,
        clock=clock,
        max_workers=2,
    )
    yield sched
    sched.shutdown(wait=False)


@pytest.fixture
def service(habit_repo, user_repo, scheduler, clock) -> HabitService:
    return HabitService(
        habit_repo=habit_repo,
        user_repo=user_repo,
        scheduler=scheduler,
        clock=clock,
    )
