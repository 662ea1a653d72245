"""
linkkeeper.engine.locks — Per-Key Lock Registry
================================================

Hands out one :class:`threading.Lock` per key (a tier, a member id).  Two
callers asking for the same key get the same lock; different keys never
contend.  Thread-safe.

Service calls arrive on ``asyncio.to_thread`` workers, so these are thread
locks.  They only serialize callers inside one process; the ``version``
columns catch the bot and API processes racing each other.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from threading import Lock


class KeyedLocks:
    """Lazily-created lock per key."""

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
        """Hold the lock for *key* for the duration of the block."""
        lock = self.get(key)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
