"""Per-key mutual exclusion for read-modify-write of a single habit document."""

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Hashable, Iterator


class KeyedLocks:
    """Lazily created lock per key; different keys never contend."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[Hashable, Lock] = {}

    def get(self, key: Hashable) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self.get(key):
            yield

    def discard(self, key: Hashable) -> None:
        with self._guard:
            self._locks.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


__all__ = ["KeyedLocks"]
