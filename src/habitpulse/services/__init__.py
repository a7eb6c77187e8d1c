"""Service module exports."""

from . import (
    analytics,
    buckets,
    completions,
    habits,
    locks,
    notifier,
    reminders,
    streaks,
)

__all__ = [
    "analytics",
    "buckets",
    "completions",
    "habits",
    "locks",
    "notifier",
    "reminders",
    "streaks",
]
