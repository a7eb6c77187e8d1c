"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "HabitPulse"
    DB_FILENAME = "habitpulse.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}
    DEV_MODE_DEFAULT = False

    def __init__(self) -> None:
        self.SECRET_KEY = os.getenv("HABITPULSE_SECRET_KEY", "replace-me")
        self.DEV_MODE = _env_bool("HABITPULSE_DEV_MODE", default=self.DEV_MODE_DEFAULT)
        self.DATA_DIR = self._resolve_data_dir()
        self.DATABASE_URL = os.getenv("HABITPULSE_DATABASE_URL", self._build_sqlite_url())

        # Reminder scheduling
        self.REMINDER_TIMEZONE = os.getenv("HABITPULSE_REMINDER_TIMEZONE") or None
        self.REMINDERS_AUTOSTART = _env_bool("HABITPULSE_REMINDERS_AUTOSTART", default=False)
        self.SCHEDULER_MAX_WORKERS = _env_int("HABITPULSE_SCHEDULER_MAX_WORKERS", 10)
        self.ENFORCE_BUCKET_LOCKS = _env_bool("HABITPULSE_ENFORCE_BUCKET_LOCKS", default=True)

        # Notifier
        self.NOTIFIER = os.getenv(
            "HABITPULSE_NOTIFIER", "log" if self.DEV_MODE else "smtp"
        ).strip().lower()
        self.SMTP_HOST = os.getenv("HABITPULSE_SMTP_HOST", "localhost")
        self.SMTP_PORT = _env_int("HABITPULSE_SMTP_PORT", 587)
        self.SMTP_USERNAME = os.getenv("HABITPULSE_SMTP_USERNAME") or None
        self.SMTP_PASSWORD = os.getenv("HABITPULSE_SMTP_PASSWORD") or None
        self.SMTP_USE_TLS = _env_bool("HABITPULSE_SMTP_USE_TLS", default=True)
        self.MAIL_FROM = os.getenv("HABITPULSE_MAIL_FROM", "HabitPulse <noreply@habitpulse.local>")
        self.NOTIFIER_TIMEOUT_SECONDS = _env_int("HABITPULSE_NOTIFIER_TIMEOUT_SECONDS", 30)
        self.TEST_NOTIFIER_TIMEOUT_SECONDS = _env_int(
            "HABITPULSE_TEST_NOTIFIER_TIMEOUT_SECONDS", 15
        )
        self.FRONTEND_URL = os.getenv("HABITPULSE_FRONTEND_URL", "http://localhost:5173")

        if not self.DEV_MODE and self.SECRET_KEY == "replace-me":
            raise ValueError("HABITPULSE_SECRET_KEY must be set in non-dev mode.")
        if self.NOTIFIER not in {"log", "smtp"}:
            raise ValueError(f"Unknown HABITPULSE_NOTIFIER: {self.NOTIFIER!r}")

    def _resolve_data_dir(self) -> Path:
        """Return the directory holding the SQLite file and logs."""

        data_root = os.getenv("HABITPULSE_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        return f"sqlite:///{self.DATA_DIR / self.DB_FILENAME}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if self.DATABASE_URL.startswith("sqlite"):
            # Scheduler jobs run on worker threads.
            return {"connect_args": {"check_same_thread": False}}
        return {"pool_pre_ping": True}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite and the logging notifier."""

    DEBUG = True
    TESTING = False
    DEV_MODE_DEFAULT = True


class TestConfig(DevConfig):
    """Configuration used by the test-suite; never starts background threads."""

    TESTING = True

    def __init__(self) -> None:
        super().__init__()
        self.REMINDERS_AUTOSTART = False
        self.NOTIFIER = "log"


_CONFIG_MAP: dict[str, type[BaseConfig]] = {
    "development": DevConfig,
    "testing": TestConfig,
    "default": BaseConfig,
}


def resolve_config(name: str | None) -> type[BaseConfig]:
    """Return the config class for the provided environment name."""

    if not name:
        return BaseConfig
    return _CONFIG_MAP.get(name.lower(), BaseConfig)
