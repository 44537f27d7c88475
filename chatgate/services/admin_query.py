"""Operational reads and resets of quota counters.

Uses the same key helpers as the live request path, so what this service reads
or deletes is exactly what ``RateLimiter`` counts. Reading current counts and
deleting current-window counters are the only operations it performs on the
counter key space.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from chatgate.adapters.quota_store.base import AbstractQuotaStore
from chatgate.core.errors import ValidationAppError
from chatgate.core.logging import identity_fields
from chatgate.schemas.admin import IdentityPage, IdentityUsage, WindowUsage
from chatgate.schemas.gate_config import GateConfig
from chatgate.schemas.identity import IdentityKey, IdentityKind
from chatgate.services.config_provider import ConfigProvider
from chatgate.utils.windows import (
    COUNTER_PREFIX,
    WindowUnit,
    counter_key,
    parse_counter_key,
    window_bounds,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


class AdminQueryService:
    """Read and reset per-identity counters for operational tooling."""

    def __init__(
        self,
        store: AbstractQuotaStore,
        config_provider: ConfigProvider,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._config_provider = config_provider
        self._clock = clock

    async def get_usage(self, identity: IdentityKey) -> IdentityUsage:
        """Current counts of every window unit for one identity.

        Raises:
            QuotaStoreError: If the store cannot be read.
        """
        now = self._clock()
        config = self._config_provider.current()
        counts: dict[WindowUnit, int] = {}
        for unit in WindowUnit:
            window_start, _ = window_bounds(unit, now)
            counts[unit] = await self._store.get(counter_key(unit, window_start, identity)) or 0
        return self._build_usage(str(identity), identity.kind, counts, config, now)

    async def reset_counters(self, identity: IdentityKey, unit: WindowUnit | None = None) -> int:
        """Delete the current-window counter of one unit, or of every unit.

        Returns:
            Number of counters that existed and were deleted.

        Raises:
            QuotaStoreError: If the store cannot be written.
        """
        now = self._clock()
        units = [unit] if unit is not None else list(WindowUnit)
        keys = [counter_key(u, window_bounds(u, now)[0], identity) for u in units]
        deleted = await self._store.delete(*keys)
        logger.info(
            "admin.counters_reset",
            extra={
                **identity_fields(identity),
                "window": unit.value if unit else "all",
                "deleted": deleted,
            },
        )
        return deleted

    async def list_identities(
        self,
        *,
        kind: IdentityKind | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> IdentityPage:
        """List identities with live counters in the current windows.

        Sorted by current minute usage (busiest first), then identity.

        Raises:
            ValidationAppError: If pagination arguments are invalid.
            QuotaStoreError: If the store cannot be scanned.
        """
        if page < 1 or not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationAppError(
                code="invalid_pagination",
                message=f"page must be >= 1 and page_size between 1 and {MAX_PAGE_SIZE}",
            )

        now = self._clock()
        config = self._config_provider.current()
        current_starts = {unit: window_bounds(unit, now)[0] for unit in WindowUnit}

        grouped: dict[str, dict[WindowUnit, int]] = {}
        for key in await self._store.scan(f"{COUNTER_PREFIX}:*"):
            parsed = parse_counter_key(key)
            if parsed is None:
                continue
            unit, window_start, identity_key = parsed
            if window_start != current_starts[unit]:
                continue
            count = await self._store.get(key)
            if count is None:
                continue
            grouped.setdefault(identity_key, {})[unit] = count

        usages: list[IdentityUsage] = []
        for identity_key, counts in grouped.items():
            try:
                identity_kind = IdentityKey.parse(identity_key).kind
            except ValidationAppError:
                continue
            if kind is not None and identity_kind is not kind:
                continue
            usages.append(self._build_usage(identity_key, identity_kind, counts, config, now))

        usages.sort(key=lambda u: (-u.windows[0].current, u.identity_key))
        total = len(usages)
        start = (page - 1) * page_size
        return IdentityPage(
            items=usages[start:start + page_size],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if total else 0,
        )

    @staticmethod
    def _build_usage(
        identity_key: str,
        identity_kind: IdentityKind,
        counts: dict[WindowUnit, int],
        config: GateConfig,
        now: float,
    ) -> IdentityUsage:
        windows: list[WindowUsage] = []
        for unit in WindowUnit:
            window_start, reset_at = window_bounds(unit, now)
            limit = config.limits.for_unit(unit)
            current = counts.get(unit, 0)
            windows.append(
                WindowUsage(
                    unit=unit,
                    current=current,
                    limit=limit,
                    remaining=max(0, limit - current) if limit else None,
                    window_start=window_start,
                    reset_at=reset_at,
                    exceeded=bool(limit) and current > limit,
                )
            )
        is_blocked = any(w.limit and w.current >= w.limit for w in windows)
        return IdentityUsage(
            identity_key=identity_key,
            identity_kind=identity_kind,
            windows=windows,
            is_blocked=is_blocked,
        )
