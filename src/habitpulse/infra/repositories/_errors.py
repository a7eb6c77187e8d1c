"""Translate SQLAlchemy failures into the service error taxonomy."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

from ...errors import PersistenceError
from ...logging_config import get_logger

logger = get_logger("repositories")


@contextmanager
def persistence_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Database error while trying to %s: %s", action, exc, exc_info=True)
        raise PersistenceError(f"Could not {action}") from exc
