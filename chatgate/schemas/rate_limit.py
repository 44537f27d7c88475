"""Rate limit decision types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from chatgate.utils.windows import WindowUnit

HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"
HEADER_WINDOW = "X-RateLimit-Window"
HEADER_IDENTITY = "X-RateLimit-Identity"
HEADER_SCOPE = "X-RateLimit-Scope"
HEADER_ERROR = "X-RateLimit-Error"
HEADER_RETRY_AFTER = "Retry-After"

STORE_UNAVAILABLE_MARKER = "store-unavailable"


class DecisionReason(str, Enum):
    OK = "ok"
    SCOPE_EXCLUDED = "scope_excluded"
    NO_LIMITS = "no_limits"
    QUOTA_EXCEEDED = "quota_exceeded"
    STORE_UNAVAILABLE = "store_unavailable"


@dataclass(frozen=True)
class WindowState:
    """Counter state of one window after this request was counted.

    Attributes:
        unit: Window unit.
        limit: Max requests per window.
        count: Requests counted in the current window, including this one.
        remaining: Requests left in the window (0 when exhausted).
        window_start: UNIX epoch seconds at which the window began.
        reset_at: UNIX epoch seconds when the window resets.
    """

    unit: WindowUnit
    limit: int
    count: int
    remaining: int
    window_start: int
    reset_at: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of ``RateLimiter.check``.

    Attributes:
        allowed: Whether the request may proceed.
        reason: Machine-readable reason for the outcome.
        window: Representative window (the exceeded one, or the tightest enforced one).
        limit: Limit of the representative window.
        count: Count of the representative window.
        remaining: Remaining requests in the representative window.
        reset_at: UNIX epoch seconds when the representative window resets.
        retry_after_seconds: Suggested wait time when denied.
        windows: Per-window state, tightest first, for every window checked.
        degraded: True when the decision was made without a healthy store.
        headers: HTTP headers describing the decision.
    """

    allowed: bool
    reason: DecisionReason
    window: WindowUnit | None = None
    limit: int | None = None
    count: int | None = None
    remaining: int | None = None
    reset_at: int | None = None
    retry_after_seconds: int | None = None
    windows: list[WindowState] = field(default_factory=list)
    degraded: bool = False
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def scope_excluded(self) -> bool:
        return self.reason is DecisionReason.SCOPE_EXCLUDED
