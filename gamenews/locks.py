import threading
from contextlib import contextmanager


class KeyedLocks:
    """One mutex per key, created on first use.

    Used as the per-article exclusion scope: a like toggle and its counter
    update, or a view increment, run while holding the article's lock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    @contextmanager
    def hold(self, key):
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield

    def discard(self, key):
        with self._guard:
            self._locks.pop(key, None)

    def __len__(self):
        return len(self._locks)
