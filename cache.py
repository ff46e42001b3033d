"""Time-boxed memoization of aggregate results.

The cache is never a source of truth: entries expire after ``ttl_seconds``
and ``invalidate_all`` drops everything, for every owner, after each entry
mutation. A ``ttl_seconds`` of zero or less turns the cache off.
"""

import threading
import time
from typing import Callable, Hashable, Optional

from errors import CacheError


_MISSING = object()


class AggregateCache:
    def __init__(
        self,
        ttl_seconds: float = 3600,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._items: dict[Hashable, tuple[float, object]] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def get(self, key: Hashable, default: object = None) -> object:
        if not self.enabled:
            return default
        now = self._clock()
        try:
            with self._lock:
                item = self._items.get(key, _MISSING)
                if item is _MISSING:
                    return default
                expires_at, value = item
                if expires_at <= now:
                    del self._items[key]
                    return default
                return value
        except TypeError as exc:
            raise CacheError(f"Unusable cache key: {key!r}") from exc

    def set(self, key: Hashable, value: object) -> None:
        if not self.enabled:
            return
        expires_at = self._clock() + self.ttl_seconds
        try:
            with self._lock:
                self._items[key] = (expires_at, value)
        except TypeError as exc:
            raise CacheError(f"Unusable cache key: {key!r}") from exc

    def invalidate_all(self) -> int:
        with self._lock:
            dropped = len(self._items)
            self._items.clear()
        return dropped

    def prune_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [
                key for key, (expires_at, _) in self._items.items() if expires_at <= now
            ]
            for key in expired:
                del self._items[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING
