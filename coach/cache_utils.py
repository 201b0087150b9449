from __future__ import annotations

from collections import OrderedDict
from threading import Lock
from time import time


class ReviewDedupCache:
    """Bounded, time-windowed set of processed review keys.

    A hit only saves work; every review step re-checks persisted state.
    """

    def __init__(self, ttl_seconds: int = 36 * 3600, max_entries: int = 50_000):
        self.ttl = ttl_seconds
        self.max_entries = max_entries
        self._store: OrderedDict[str, float] = OrderedDict()
        self._lock = Lock()

    @staticmethod
    def key(athlete_id: int, local_date: str, window: str) -> str:
        return f"{athlete_id}:{local_date}:{window}"

    def add(self, key: str) -> None:
        with self._lock:
            self._store[key] = time()
            self._store.move_to_end(key)
            while len(self._store) > self.max_entries:
                self._store.popitem(last=False)

    def seen(self, key: str) -> bool:
        with self._lock:
            ts = self._store.get(key)
            if ts is None:
                return False
            if time() - ts > self.ttl:
                self._store.pop(key, None)
                return False
            return True

    def __contains__(self, key: str) -> bool:
        return self.seen(key)

    def __len__(self) -> int:
        return len(self._store)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
