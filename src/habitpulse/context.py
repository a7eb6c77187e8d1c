"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlmodel import Session

from .config import BaseConfig
from .infra.database import create_db_engine, create_session_factory, init_database
from .infra.repositories import SQLModelHabitRepository, SQLModelUserRepository
from .scheduler import ReminderScheduler
from .services.habits import HabitService
from .services.locks import KeyedLocks
from .services.notifier import Notifier, build_notifier
from .services.reminders import zone_clock


@dataclass
class AppContext:
    """Everything a request handler or CLI command needs, built once per process."""

    config: BaseConfig
    engine: Any
    session_factory: Callable[[], Session]

    habit_repo: SQLModelHabitRepository
    user_repo: SQLModelUserRepository

    notifier: Notifier
    locks: KeyedLocks
    scheduler: ReminderScheduler
    habit_service: HabitService

    def start_reminders(self) -> int:
        """Arm every eligible habit and start the scheduler; returns the armed count."""

        armed = self.scheduler.sync_all()
        self.scheduler.start()
        return armed

    def shutdown(self) -> None:
        self.scheduler.shutdown(wait=False)
        self.engine.dispose()


def create_app_context(
    config: Optional[BaseConfig] = None, *, notifier: Optional[Notifier] = None
) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()

    engine = create_db_engine(config)
    init_database(engine)
    session_factory = create_session_factory(engine)

    habit_repo = SQLModelHabitRepository(session_factory)
    user_repo = SQLModelUserRepository(session_factory)

    notifier = notifier or build_notifier(config)
    locks = KeyedLocks()
    scheduler = ReminderScheduler(
        habit_repo=habit_repo,
        user_repo=user_repo,
        notifier=notifier,
        locks=locks,
        timezone=config.REMINDER_TIMEZONE,
        max_workers=config.SCHEDULER_MAX_WORKERS,
    )
    habit_service = HabitService(
        habit_repo=habit_repo,
        user_repo=user_repo,
        scheduler=scheduler,
        locks=locks,
        clock=zone_clock(config.REMINDER_TIMEZONE),
        enforce_bucket_locks=config.ENFORCE_BUCKET_LOCKS,
    )

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        habit_repo=habit_repo,
        user_repo=user_repo,
        notifier=notifier,
        locks=locks,
        scheduler=scheduler,
        habit_service=habit_service,
    )
