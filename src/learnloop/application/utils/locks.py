"""Per-key locks so that work for one user never waits on another user."""

import threading
import weakref
from collections.abc import Hashable


class KeyedLocks:
    """
    Thread-safe registry handing out one re-entrant lock per key.

    The registry lock is held only while looking a lock up; callers then
    serialise on their own key's lock. Entries are weak: a key's lock is
    dropped once nobody holds or waits on it, so the registry does not grow
    with every user ever seen.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[Hashable, threading.RLock] = weakref.WeakValueDictionary()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> threading.RLock:
        with self._lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    def __call__(self, key: Hashable) -> threading.RLock:
        return self.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._locks)
