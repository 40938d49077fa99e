"""In-process keyed locks.

Serialize the read-check-write sequences that must not interleave inside one
API process: signups per raid, default selection per owner. Across processes
the row locks taken by the repositories (SELECT ... FOR UPDATE) and the table
constraints carry the same guarantee.

Hold a lock for the whole unit of work, commit included:

    with serialized("raid", raid_id), unit_of_work(db):
        ...

Lock order when more than one is needed: raid before owner.
"""

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator


class KeyedLock:
    """Registry of reentrant locks created on demand and dropped when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, tuple[threading.RLock, int]] = {}

    def _acquire_ref(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock, refs = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.RLock()
            self._locks[key] = (lock, refs + 1)
            return lock

    def _release_ref(self, key: Hashable) -> None:
        with self._guard:
            lock, refs = self._locks[key]
            if refs <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, refs - 1)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._acquire_ref(key)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            self._release_ref(key)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)


_registry = KeyedLock()


@contextmanager
def serialized(scope: str, key: Hashable) -> Iterator[None]:
    """Hold the process-wide lock for (scope, key)."""
    with _registry.hold((scope, key)):
        yield
