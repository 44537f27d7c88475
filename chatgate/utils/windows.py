"""Aligned window arithmetic and the shared storage key scheme.

Every component that touches the quota store (the limiter, the verification
gate and the admin tooling) derives its keys from the helpers below so that the
live request path and operational tooling observe the same key space.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

COUNTER_PREFIX = "rate"
VERIFICATION_PREFIX = "verify"


class WindowUnit(str, Enum):
    """Window units in increasing size (and decreasing strictness)."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"


_FIXED_DURATIONS = {
    WindowUnit.MINUTE: 60,
    WindowUnit.HOUR: 3600,
    WindowUnit.DAY: 86400,
}


def _month_bounds(timestamp: int) -> tuple[int, int]:
    current = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    start = current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return int(start.timestamp()), int(end.timestamp())


def window_bounds(unit: WindowUnit, now: float) -> tuple[int, int]:
    """Compute the aligned window containing ``now``.

    Minute, hour and day windows are aligned on epoch multiples of their
    duration. Month windows follow the UTC calendar month.

    Args:
        unit: Window unit.
        now: UNIX time in seconds.

    Returns:
        Tuple of (window_start_epoch_seconds, reset_at_epoch_seconds).
    """
    timestamp = int(now)
    if unit is WindowUnit.MONTH:
        return _month_bounds(timestamp)
    duration = _FIXED_DURATIONS[unit]
    window_start = timestamp - (timestamp % duration)
    return window_start, window_start + duration


def window_duration(unit: WindowUnit, now: float) -> int:
    """Length in seconds of the window containing ``now``."""
    start, reset_at = window_bounds(unit, now)
    return reset_at - start


def counter_key(unit: WindowUnit, window_start: int, identity: object) -> str:
    """Counter key: ``rate:<unit>:<windowStart>:<identityKey>``."""
    return f"{COUNTER_PREFIX}:{unit.value}:{window_start}:{identity}"


def parse_counter_key(key: str) -> tuple[WindowUnit, int, str] | None:
    """Split a counter key back into (unit, window_start, identity).

    Returns None for keys that do not follow the counter scheme.
    """
    parts = key.split(":", 3)
    if len(parts) != 4 or parts[0] != COUNTER_PREFIX:
        return None
    try:
        return WindowUnit(parts[1]), int(parts[2]), parts[3]
    except ValueError:
        return None


def verification_key(identity: object) -> str:
    """Verification record key: ``verify:<identityKey>``."""
    return f"{VERIFICATION_PREFIX}:{identity}"
