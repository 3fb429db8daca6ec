import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    """
    One mutual-exclusion lock per key, created on first use.

    The registry lock only guards the lookup; callers then block on the
    per-key lock outside of it, so unrelated keys never wait on each other
    while concurrent first uses of the same key still converge on one lock.

    Locks are never removed: the table holds one entry per key ever seen.
    """

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _get(self, key: str) -> threading.Lock:
        with self._registry_lock:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def acquire(self, key: str) -> None:
        """Block until the caller holds `key` exclusively."""
        self._get(key).acquire()

    def release(self, key: str) -> None:
        with self._registry_lock:
            lock = self._locks[key]
        lock.release()

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for `key` for the duration of the with-block."""
        self.acquire(key)
        try:
            yield
        finally:
            self.release(key)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def __contains__(self, key: str) -> bool:
        with self._registry_lock:
            return key in self._locks
