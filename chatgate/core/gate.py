"""Gate dependency for FastAPI routes.

This module wires identity resolution, the verification gate and the rate
limiter into the HTTP layer, in that order.

Design goals:
- Minimal coupling: routes depend on a dependency function only.
- Out-of-scope routes skip verification and counting entirely.
- Denials are raised as ``AppError`` subclasses and rendered by the global
  exception handlers (429 for quota, 403 for verification) with the full
  rate-limit header set, so clients can implement correct backoff.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request, Response

from chatgate.core.dependencies import GateServices, get_services
from chatgate.core.errors import QuotaStoreError, RateLimitExceededError, VerificationRequiredError
from chatgate.core.logging import identity_fields
from chatgate.schemas.identity import IdentityKey
from chatgate.schemas.rate_limit import DecisionReason, RateLimitDecision
from chatgate.schemas.verification import GateDecision
from chatgate.services.identity_resolver import AuthMaterial
from chatgate.services.rate_limiter import route_in_scope

logger = logging.getLogger(__name__)

# Headers set by reverse proxies doing forward-auth (nginx auth_request, Traefik).
ORIGINAL_URI_HEADERS = ("x-original-uri", "x-forwarded-uri")
VERIFICATION_REQUIRED_HEADER = "X-Verification-Required"


@dataclass(frozen=True)
class GateOutcome:
    """Everything the gate decided for an allowed request."""

    identity: IdentityKey
    path: str
    verification: GateDecision | None
    rate_limit: RateLimitDecision


def resolve_gated_path(request: Request) -> str:
    """Path being gated: forwarded original URI, ``path`` query param, or the request path."""
    for header in ORIGINAL_URI_HEADERS:
        original = request.headers.get(header)
        if original:
            return original.split("?", 1)[0] or "/"
    return request.query_params.get("path") or request.url.path


async def enforce_gate(
    request: Request,
    response: Response,
    services: Annotated[GateServices, Depends(get_services)],
) -> GateOutcome:
    """FastAPI dependency enforcing verification and quotas.

    Args:
        request: FastAPI request.
        response: Response whose headers receive the rate-limit headers.
        services: Gate services of the current app.

    Returns:
        GateOutcome for allowed requests.

    Raises:
        VerificationRequiredError: 403 when a challenge must be completed first.
        RateLimitExceededError: 429 when a window is exhausted.
        QuotaStoreError: 503 when the store failed and the limiter fails closed.
    """
    path = resolve_gated_path(request)
    identity = services.identity_resolver.resolve(AuthMaterial.from_request(request))
    request.state.identity = identity

    verification: GateDecision | None = None
    if route_in_scope(path, services.config_provider.current().routes_in_scope):
        verification = await services.verification_gate.evaluate(identity)
        if verification.required:
            raise VerificationRequiredError(
                code="verification_required",
                message="Human verification required. Complete the security challenge and retry.",
                details={"identity_kind": identity.kind.value},
                headers={VERIFICATION_REQUIRED_HEADER: "true"},
            )

    decision = await services.rate_limiter.check(identity, path)

    if not decision.allowed:
        if decision.reason is DecisionReason.STORE_UNAVAILABLE:
            raise QuotaStoreError(
                code="rate_limit_unavailable",
                message="Rate limiting is temporarily unavailable. Try again later.",
                headers=decision.headers,
            )
        raise RateLimitExceededError(
            code="rate_limit_exceeded",
            message="Rate limit exceeded. Try again later.",
            details={
                "window": decision.window.value if decision.window else "",
                "limit": decision.limit or 0,
                "remaining": 0,
                "reset_at": decision.reset_at or 0,
                "retry_after": decision.retry_after_seconds or 0,
                "identity_kind": identity.kind.value,
            },
            headers=decision.headers,
        )

    response.headers.update(decision.headers)
    logger.debug(
        "gate.allowed",
        extra={
            **identity_fields(identity),
            "path": path,
            "reason": decision.reason.value,
            "degraded": decision.degraded,
        },
    )
    return GateOutcome(identity=identity, path=path, verification=verification, rate_limit=decision)
