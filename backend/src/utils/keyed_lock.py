"""
Per-key mutual exclusion for in-process work.

Population of one cache key must never run twice at the same time in a
process, while different keys proceed in parallel. Locks are reference
counted and dropped once no thread holds or waits on them.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Generator, Hashable, Tuple


class KeyedLock:
    """A registry of locks, one per hashable key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, Tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Generator[None, None, None]:
        """Block until the lock for key is acquired; release on exit."""
        with self._guard:
            lock, waiters = self._locks.get(key, (threading.Lock(), 0))
            self._locks[key] = (lock, waiters + 1)

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                lock, waiters = self._locks[key]
                if waiters <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, waiters - 1)

    def active_keys(self) -> int:
        """Number of keys currently held or awaited."""
        with self._guard:
            return len(self._locks)
