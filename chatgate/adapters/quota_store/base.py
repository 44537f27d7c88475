"""Quota store interface.

Services depend on this abstraction (not a concrete client) so the shared store
can be Redis in production and an in-memory fake in tests or single-process
development.

Every operation is a potential I/O suspension point. Implementations must bound
each call with a short timeout and report any failure (connection refused,
timeout, protocol error) as ``QuotaStoreError``; callers decide whether that
means fail-open or fail-closed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractQuotaStore(ABC):
    """Interface for the atomic key-value store shared by all instances."""

    @abstractmethod
    async def increment(self, key: str, ttl_seconds: int) -> int:
        """Atomically increment a counter and (re)apply its TTL.

        The increment and the expiry must be applied together in a single round
        trip, so a counter can never be left without an expiry.

        Args:
            key: Counter key.
            ttl_seconds: Expiry applied to the counter.

        Returns:
            The counter value after the increment.

        Raises:
            QuotaStoreError: If the store is unreachable or the call times out.
        """
        raise NotImplementedError

    @abstractmethod
    async def get(self, key: str) -> int | None:
        """Return the integer value stored at key, or None when absent."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: int, ttl_seconds: int) -> None:
        """Store an integer value with an expiry."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys and return how many existed."""
        raise NotImplementedError

    @abstractmethod
    async def ttl(self, key: str) -> int | None:
        """Remaining lifetime in seconds, or None when the key is absent."""
        raise NotImplementedError

    @abstractmethod
    async def scan(self, pattern: str) -> list[str]:
        """Return keys matching a glob-style pattern (admin tooling only)."""
        raise NotImplementedError

    async def ping(self) -> bool:
        """Return True when the store answers."""
        return True

    async def close(self) -> None:
        """Release client resources."""
        return None
