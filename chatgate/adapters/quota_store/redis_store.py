"""Redis-backed quota store shared across service instances."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import redis.asyncio as redis
from redis.exceptions import RedisError

from chatgate.adapters.quota_store.base import AbstractQuotaStore
from chatgate.core.errors import QuotaStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Admin scans walk the whole key space and get a looser bound than hot-path calls.
SCAN_TIMEOUT_MULTIPLIER = 25


class RedisQuotaStore(AbstractQuotaStore):
    """Quota store using ``redis.asyncio``.

    Counters are incremented with ``INCR`` and ``EXPIRE`` queued in a single
    MULTI/EXEC pipeline, so concurrent callers always observe the pair as one
    operation and a crash between the two calls is impossible. Ordering of
    increments for the same key is left entirely to Redis.
    """

    def __init__(self, client: redis.Redis, *, timeout_seconds: float = 0.2) -> None:
        """Initialize the store.

        Args:
            client: Configured asyncio Redis client (``decode_responses=True``).
            timeout_seconds: Upper bound for each round trip.
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._client = client
        self._timeout = timeout_seconds

    @classmethod
    def from_url(cls, url: str, *, timeout_seconds: float = 0.2) -> "RedisQuotaStore":
        """Build a store from a Redis URL with socket timeouts matching the call bound."""
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=timeout_seconds,
            socket_timeout=timeout_seconds,
        )
        return cls(client, timeout_seconds=timeout_seconds)

    async def _call(
        self,
        operation: str,
        func: Callable[[], Awaitable[T]],
        *,
        timeout: float | None = None,
    ) -> T:
        try:
            return await asyncio.wait_for(func(), timeout=timeout or self._timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise QuotaStoreError(
                code="quota_store_unavailable",
                message=f"Quota store {operation} failed: {type(exc).__name__}",
                details={"operation": operation},
            ) from exc

    async def increment(self, key: str, ttl_seconds: int) -> int:
        async def _incr() -> int:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl_seconds)
                results: list[Any] = await pipe.execute()
            return int(results[0])

        return await self._call("increment", _incr)

    async def get(self, key: str) -> int | None:
        value = await self._call("get", lambda: self._client.get(key))
        return int(value) if value is not None else None

    async def set(self, key: str, value: int, ttl_seconds: int) -> None:
        await self._call("set", lambda: self._client.set(key, value, ex=ttl_seconds))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._call("delete", lambda: self._client.delete(*keys)))

    async def ttl(self, key: str) -> int | None:
        remaining = await self._call("ttl", lambda: self._client.ttl(key))
        # -2: key missing, -1: key without expiry (never written by this service)
        if remaining is None or remaining == -2:
            return None
        return int(remaining) if remaining >= 0 else None

    async def scan(self, pattern: str) -> list[str]:
        async def _scan() -> list[str]:
            return [key async for key in self._client.scan_iter(match=pattern, count=500)]

        return await self._call(
            "scan",
            _scan,
            timeout=self._timeout * SCAN_TIMEOUT_MULTIPLIER,
        )

    async def ping(self) -> bool:
        try:
            return bool(await self._call("ping", self._client.ping))
        except QuotaStoreError:
            logger.warning("quota_store.ping_failed")
            return False

    async def close(self) -> None:
        await self._client.aclose()
