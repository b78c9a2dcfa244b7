# src/subscription/locks.py
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class KeyedLocks:
    """One lock per key, created on demand and dropped when nobody holds it.

    Keys are acquired in sorted order so two callers asking for overlapping
    key sets cannot deadlock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._refs: Dict[str, int] = {}

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
                self._refs[key] = 0
            self._refs[key] += 1
            return lock

    def _release(self, key: str) -> None:
        with self._guard:
            self._refs[key] -= 1
            if self._refs[key] == 0:
                del self._refs[key]
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        ordered: List[str] = sorted(set(keys))
        acquired: List[str] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                try:
                    lock.acquire()
                except BaseException:
                    self._release(key)
                    raise
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._release(key)

    def active_keys(self) -> List[str]:
        with self._guard:
            return list(self._locks)


ledger_locks = KeyedLocks()
