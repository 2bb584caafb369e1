"""
Client-side query cache with optimistic updates.

Screens read lists of rows from the cache keyed like ``("fuelLogs", bike_id)``.
Mutations apply their expected result to the cache first, then call the
backend; on failure the affected keys are restored from a snapshot.
"""

import copy
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Hashable, Iterator, Sequence

logger = logging.getLogger(__name__)

CacheKey = tuple[Hashable, ...]
Rows = list[dict[str, Any]]

# Rows younger than this are served without asking the backend.
STALE_AFTER_SECONDS = 5 * 60

# Sentinel for "key was absent" inside a snapshot.
_MISSING = object()


class QueryCache:
    """Thread-safe mapping of query keys to row lists."""

    def __init__(self, stale_after: float = STALE_AFTER_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.stale_after = stale_after
        self.clock = clock
        self._data: dict[CacheKey, Rows] = {}
        self._stamps: dict[CacheKey, float] = {}
        self._lock = threading.RLock()

    def get(self, key: CacheKey) -> Rows | None:
        with self._lock:
            rows = self._data.get(key)
            return None if rows is None else list(rows)

    def get_fresh(self, key: CacheKey) -> Rows | None:
        """Rows at ``key`` if they were written within ``stale_after`` seconds."""
        with self._lock:
            stamp = self._stamps.get(key)
            if stamp is None or self.clock() - stamp > self.stale_after:
                return None
            return self.get(key)

    def set(self, key: CacheKey, rows: Rows) -> None:
        with self._lock:
            self._data[key] = list(rows)
            self._stamps[key] = self.clock()

    def update(self, key: CacheKey, fn: Callable[[Rows], Rows]) -> Rows:
        """Replace the rows at ``key`` with ``fn(current rows)``."""
        with self._lock:
            updated = list(fn(list(self._data.get(key, []))))
            self.set(key, updated)
            return list(updated)

    def discard(self, key: CacheKey) -> None:
        with self._lock:
            self._data.pop(key, None)
            self._stamps.pop(key, None)

    def snapshot(self, *keys: CacheKey) -> dict[CacheKey, Any]:
        """Deep-copy the current state of ``keys`` for a later ``restore``."""
        with self._lock:
            return {
                key: (copy.deepcopy(self._data[key]), self._stamps[key]) if key in self._data else _MISSING
                for key in keys
            }

    def restore(self, snapshot: dict[CacheKey, Any]) -> None:
        with self._lock:
            for key, saved in snapshot.items():
                if saved is _MISSING:
                    self.discard(key)
                else:
                    self._data[key], self._stamps[key] = saved

    def invalidate(self, prefix: Hashable | None = None) -> None:
        """Drop every key whose first element is ``prefix`` (or everything)."""
        with self._lock:
            if prefix is None:
                self._data.clear()
                self._stamps.clear()
                return
            for key in [k for k in self._data if k and k[0] == prefix]:
                self.discard(key)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._data


@contextmanager
def optimistic(cache: QueryCache, keys: Sequence[CacheKey], apply: Callable[[], None]) -> Iterator[None]:
    """
    Apply an optimistic cache change around a backend call.

    Usage:
        with optimistic(cache, [key], lambda: cache.update(key, add_row)):
            backend.insert(...)

    On exception the snapshot taken before ``apply`` is restored and the
    exception re-raised.
    """
    saved = cache.snapshot(*keys)
    try:
        apply()
        yield
    except Exception:
        logger.debug(f"Rolling back optimistic update for {list(keys)}")
        cache.restore(saved)
        raise
