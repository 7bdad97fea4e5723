"""
Per-user serialization of session transitions.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class SessionLockRegistry:
    """
    Hands out one re-entrant lock per user id.

    Re-entrant so an out-of-bounds callback running on a thread that
    already holds the user's lock cannot deadlock itself.
    """

    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def lock_for(self, user_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            return lock

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        lock = self.lock_for(user_id)
        with lock:
            yield
