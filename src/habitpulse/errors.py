"""Domain error taxonomy shared by services and the HTTP layer."""

from __future__ import annotations


class HabitPulseError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    code = "server_error"

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "message": str(self)}


class NotFoundError(HabitPulseError):
    """Habit or user is missing, or not owned by the caller."""

    status_code = 404
    code = "not_found"


class InvalidIndexError(HabitPulseError):
    """Bucket index falls outside the generated tick-box sequence."""

    status_code = 400
    code = "invalid_index"

    def __init__(self, index: int, length: int) -> None:
        if length:
            message = f"Bucket index {index} is outside 0..{length - 1}"
        else:
            message = f"Bucket index {index} is invalid: this frequency has no buckets"
        super().__init__(message)
        self.index = index
        self.length = length


class ValidationError(HabitPulseError):
    """Malformed frequency, time, weekday or payload input."""

    status_code = 400
    code = "validation_error"


class BucketLockedError(ValidationError):
    """Toggle targeted a future (locked) or already missed bucket."""

    status_code = 409
    code = "bucket_locked"


class AuthenticationError(HabitPulseError):
    """Request carries no usable caller identity."""

    status_code = 401
    code = "unauthenticated"


class PersistenceError(HabitPulseError):
    """Repository read or write failed."""

    status_code = 500
    code = "persistence_error"


class NotificationError(HabitPulseError):
    """Notifier reported a failure or timed out."""

    status_code = 502
    code = "notification_failed"


__all__ = [
    "AuthenticationError",
    "BucketLockedError",
    "HabitPulseError",
    "InvalidIndexError",
    "NotFoundError",
    "NotificationError",
    "PersistenceError",
    "ValidationError",
]
