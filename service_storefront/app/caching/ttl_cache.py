"""
Bounded in-process cache with per-entry expiry and LRU eviction.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached value and the monotonic time after which it is gone."""
    value: T
    expires_at: float


class BoundedTTLCache(Generic[T]):
    """Memoization cache holding at most ``max_entries`` values.

    Reads promote a live entry to most-recently-used; an expired entry reads
    as a miss and is dropped on the spot. When a write pushes the size past
    the bound, the least recently used entry (oldest insertion if never read)
    is evicted. Overwriting a key keeps its recency position.

    The cache is never a source of truth: callers compute from storage on a
    miss and ``set`` the result.
    """

    def __init__(self, max_entries: int = 100, clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._clock = clock
        self._store: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: str) -> Optional[T]:
        """Return the live value for ``key`` or None."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._store[key]
                return None
            self._store.move_to_end(key)
            return entry.value

    def set(self, key: str, value: T, ttl: float) -> None:
        """Store ``value`` for ``ttl`` seconds. Non-positive ``ttl`` stores nothing."""
        if ttl <= 0:
            return
        with self._lock:
            self._store[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
            if len(self._store) > self._max_entries:
                # At most one entry over the bound per write
                self._store.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: str) -> bool:
        # Membership ignores expiry and does not touch recency
        with self._lock:
            return key in self._store
