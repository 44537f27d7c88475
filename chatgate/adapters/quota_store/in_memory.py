"""In-memory quota store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expired keys are dropped lazily when touched, mirroring store-side TTLs.
"""

from __future__ import annotations

import fnmatch
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from chatgate.adapters.quota_store.base import AbstractQuotaStore


@dataclass
class _Entry:
    value: int
    expires_at: float


class InMemoryQuotaStore(AbstractQuotaStore):
    """Quota store keeping counters in a process-local dict.

    Important:
        This store is per-process only. Use it for tests and single-worker
        development; production deployments share a Redis store.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def _live_entry_locked(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry

    async def increment(self, key: str, ttl_seconds: int) -> int:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        with self._lock:
            entry = self._live_entry_locked(key)
            value = entry.value + 1 if entry else 1
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)
            return value

    async def get(self, key: str) -> int | None:
        with self._lock:
            entry = self._live_entry_locked(key)
            return entry.value if entry else None

    async def set(self, key: str, value: int, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)

    async def delete(self, *keys: str) -> int:
        deleted = 0
        with self._lock:
            for key in keys:
                if self._live_entry_locked(key) is not None:
                    deleted += 1
                self._entries.pop(key, None)
        return deleted

    async def ttl(self, key: str) -> int | None:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return None
            return max(1, int(math.ceil(entry.expires_at - self._clock())))

    async def scan(self, pattern: str) -> list[str]:
        with self._lock:
            keys = list(self._entries)
            return [
                key
                for key in keys
                if fnmatch.fnmatchcase(key, pattern) and self._live_entry_locked(key) is not None
            ]
