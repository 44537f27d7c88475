"""Multi-window quota enforcement on top of the shared quota store.

Rate limiting strategy:
- Fixed, aligned windows per identity: minute, hour, day and UTC month.
- Windows are checked tightest first and the check stops at the first window
  whose counter went over its limit; later windows are not incremented.
- Each window costs exactly one atomic increment-with-expiry round trip.
- Counts only ever grow within a window; only administrative resets delete them.

Store failures follow ``FailurePolicy.FAIL_OPEN`` by default: the request is
allowed, the decision is marked as degraded, and the failure is logged.
"""

from __future__ import annotations

import fnmatch
import logging
import math
import time
from typing import Callable, Iterable

from chatgate.adapters.quota_store.base import AbstractQuotaStore
from chatgate.core.errors import QuotaStoreError
from chatgate.core.logging import identity_fields
from chatgate.core.policies import FailurePolicy
from chatgate.schemas.gate_config import WindowSpec
from chatgate.schemas.identity import IdentityKey
from chatgate.schemas.rate_limit import (
    HEADER_ERROR,
    HEADER_IDENTITY,
    HEADER_LIMIT,
    HEADER_REMAINING,
    HEADER_RESET,
    HEADER_RETRY_AFTER,
    HEADER_SCOPE,
    HEADER_WINDOW,
    STORE_UNAVAILABLE_MARKER,
    DecisionReason,
    RateLimitDecision,
    WindowState,
)
from chatgate.services.config_provider import ConfigProvider
from chatgate.utils.windows import counter_key, window_bounds

logger = logging.getLogger(__name__)

_GLOB_CHARS = frozenset("*?[")


def route_in_scope(path: str, patterns: Iterable[str]) -> bool:
    """Return True when path matches any scope pattern.

    Plain patterns are path prefixes; patterns containing glob characters are
    matched with ``fnmatch`` against the whole path.
    """
    for pattern in patterns:
        if _GLOB_CHARS.intersection(pattern):
            if fnmatch.fnmatchcase(path, pattern):
                return True
        elif path.startswith(pattern):
            return True
    return False


def _retry_after(reset_at: int, now: float) -> int:
    return max(1, int(math.ceil(reset_at - now)))


class RateLimiter:
    """Check and count requests against every enforced window."""

    def __init__(
        self,
        store: AbstractQuotaStore,
        config_provider: ConfigProvider,
        *,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared atomic counter store.
            config_provider: Source of limits and routes in scope.
            failure_policy: Outcome when the store fails (fail-open by default).
            clock: Time source function returning UNIX time in seconds.
        """
        self._store = store
        self._config_provider = config_provider
        self._failure_policy = failure_policy
        self._clock = clock

    @property
    def failure_policy(self) -> FailurePolicy:
        return self._failure_policy

    async def check(self, identity: IdentityKey, route_path: str) -> RateLimitDecision:
        """Count this request and decide whether it may proceed.

        Never raises for store problems; see the module docstring.

        Args:
            identity: Resolved caller identity.
            route_path: Path of the route being accessed.

        Returns:
            RateLimitDecision with the outcome, per-window state and headers.
        """
        config = self._config_provider.current()

        if not route_in_scope(route_path, config.routes_in_scope):
            return RateLimitDecision(
                allowed=True,
                reason=DecisionReason.SCOPE_EXCLUDED,
                headers={HEADER_SCOPE: "excluded"},
            )

        windows = config.enforced_windows
        if not windows:
            return RateLimitDecision(allowed=True, reason=DecisionReason.NO_LIMITS)

        now = self._clock()
        states: list[WindowState] = []
        try:
            for spec in windows:
                state = await self._count(identity, spec, now)
                states.append(state)
                if state.count > state.limit:
                    return self._deny(identity, route_path, state, states, now)
        except QuotaStoreError as exc:
            return self._on_store_failure(identity, route_path, windows[0], now, exc)

        representative = states[0]
        logger.info(
            "rate_limit.allowed",
            extra={
                **identity_fields(identity),
                "window": representative.unit.value,
                "count": representative.count,
                "limit": representative.limit,
                "remaining": representative.remaining,
                "path": route_path,
            },
        )
        return RateLimitDecision(
            allowed=True,
            reason=DecisionReason.OK,
            window=representative.unit,
            limit=representative.limit,
            count=representative.count,
            remaining=representative.remaining,
            reset_at=representative.reset_at,
            windows=states,
            headers=self._headers(identity, representative),
        )

    async def _count(self, identity: IdentityKey, spec: WindowSpec, now: float) -> WindowState:
        window_start, reset_at = window_bounds(spec.unit, now)
        key = counter_key(spec.unit, window_start, identity)
        count = await self._store.increment(key, ttl_seconds=reset_at - window_start)
        return WindowState(
            unit=spec.unit,
            limit=spec.limit,
            count=count,
            remaining=max(0, spec.limit - count),
            window_start=window_start,
            reset_at=reset_at,
        )

    def _deny(
        self,
        identity: IdentityKey,
        route_path: str,
        exceeded: WindowState,
        states: list[WindowState],
        now: float,
    ) -> RateLimitDecision:
        retry_after = _retry_after(exceeded.reset_at, now)
        logger.warning(
            "rate_limit.exceeded",
            extra={
                **identity_fields(identity),
                "window": exceeded.unit.value,
                "count": exceeded.count,
                "limit": exceeded.limit,
                "retry_after_s": retry_after,
                "path": route_path,
            },
        )
        headers = self._headers(identity, exceeded)
        headers[HEADER_RETRY_AFTER] = str(retry_after)
        return RateLimitDecision(
            allowed=False,
            reason=DecisionReason.QUOTA_EXCEEDED,
            window=exceeded.unit,
            limit=exceeded.limit,
            count=exceeded.count,
            remaining=0,
            reset_at=exceeded.reset_at,
            retry_after_seconds=retry_after,
            windows=states,
            headers=headers,
        )

    def _on_store_failure(
        self,
        identity: IdentityKey,
        route_path: str,
        tightest: WindowSpec,
        now: float,
        exc: QuotaStoreError,
    ) -> RateLimitDecision:
        _, reset_at = window_bounds(tightest.unit, now)
        allowed = self._failure_policy is FailurePolicy.FAIL_OPEN
        logger.error(
            "rate_limit.store_unavailable",
            extra={
                **identity_fields(identity),
                "failure_policy": self._failure_policy.value,
                "allowed": allowed,
                "error_code": exc.code,
                "error_msg": exc.message,
                "path": route_path,
            },
        )
        headers = {
            HEADER_LIMIT: str(tightest.limit),
            HEADER_REMAINING: str(tightest.limit if allowed else 0),
            HEADER_RESET: str(reset_at),
            HEADER_WINDOW: tightest.unit.value,
            HEADER_IDENTITY: identity.kind.value,
            HEADER_ERROR: STORE_UNAVAILABLE_MARKER,
        }
        retry_after = None
        if not allowed:
            retry_after = _retry_after(reset_at, now)
            headers[HEADER_RETRY_AFTER] = str(retry_after)
        return RateLimitDecision(
            allowed=allowed,
            reason=DecisionReason.STORE_UNAVAILABLE,
            window=tightest.unit,
            limit=tightest.limit,
            remaining=tightest.limit if allowed else 0,
            reset_at=reset_at,
            retry_after_seconds=retry_after,
            degraded=True,
            headers=headers,
        )

    @staticmethod
    def _headers(identity: IdentityKey, state: WindowState) -> dict[str, str]:
        return {
            HEADER_LIMIT: str(state.limit),
            HEADER_REMAINING: str(state.remaining),
            HEADER_RESET: str(state.reset_at),
            HEADER_WINDOW: state.unit.value,
            # Only the kind: the raw identity never leaves the service.
            HEADER_IDENTITY: identity.kind.value,
        }
