"""Bounded in-process TTL cache for recent verifications.

This cache is best-effort and process-local: it only exists so a short store
outage does not immediately force recently verified callers back through a
challenge. It is never authoritative and never consistent across instances.
Expired entries are evicted lazily on access; there is no background sweep.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass
class CacheItem(Generic[V]):
    """Container for cached values with expiration metadata."""

    value: V
    expires_at: float


class BoundedTTLCache(Generic[V]):
    """Thread-safe, in-memory TTL cache with LRU eviction.

    Unlike a single-TTL cache, every entry carries its own lifetime so the
    verification duration can change between reloads of the gate config.

    Attributes:
        max_entries: Maximum number of cached items.
    """

    def __init__(
        self,
        max_entries: int = 10_000,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheItem[V]] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"BoundedTTLCache(max_entries={self._max_entries}, size={len(self._store)}, "
            f"hits={self._hits}, misses={self._misses}, evictions={self._evictions})"
        )

    def get(self, key: str) -> V | None:
        """Retrieve a cached value if it exists and is not expired."""

        with self._lock:
            item = self._live_item_locked(key)
            if item is None:
                self._misses += 1
                return None

            self._hits += 1
            self._store.move_to_end(key)
            return item.value

    def set(self, key: str, value: V, ttl_seconds: float) -> None:
        """Store a value for ttl_seconds, evicting the least recently used entry if full."""

        with self._lock:
            self._store[key] = CacheItem(value=value, expires_at=self._clock() + ttl_seconds)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

            logger.debug(
                "local_cache.set",
                extra={
                    "size": len(self._store),
                    "ttl_s": ttl_seconds,
                },
            )

    def ttl(self, key: str) -> int | None:
        """Remaining lifetime in whole seconds, or None when absent/expired."""

        with self._lock:
            item = self._live_item_locked(key)
            if item is None:
                return None
            return max(1, int(math.ceil(item.expires_at - self._clock())))

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _live_item_locked(self, key: str) -> CacheItem[V] | None:
        item = self._store.get(key)
        if item is None:
            return None
        if item.expires_at <= self._clock():
            self._store.pop(key, None)
            self._evictions += 1
            return None
        return item

    def _evict_if_over_capacity_locked(self) -> None:
        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1
