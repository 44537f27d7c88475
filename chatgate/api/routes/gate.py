"""Forward-auth endpoint consumed by the chat proxy layer.

The proxy (nginx ``auth_request``, Traefik ``forwardAuth`` or application code)
calls this endpoint before forwarding a chat request upstream and passes the
original URI in ``X-Original-URI``/``X-Forwarded-Uri`` (or ``?path=``). A 200
means "forward it" and carries the rate-limit headers to copy onto the
upstream response; 429 and 403 are returned to the client as-is.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from chatgate.core.gate import GateOutcome, enforce_gate

router = APIRouter(tags=["Gate"])


class GateCheckResponse(BaseModel):
    allowed: bool = True
    path: str
    identity_kind: str
    reason: str = Field(..., description="ok, scope_excluded, no_limits or store_unavailable")
    window: str | None = None
    limit: int | None = None
    remaining: int | None = None
    reset_at: int | None = None
    degraded: bool = Field(False, description="True when quotas could not be checked")
    verification_bypass: str | None = Field(
        None,
        description="Why no challenge was needed (disabled, authenticated, not_required, cached)",
    )


@router.get("/gate/authorize", response_model=GateCheckResponse)
async def authorize(
    outcome: Annotated[GateOutcome, Depends(enforce_gate)],
) -> GateCheckResponse:
    """Run the gate for the forwarded request.

    Returns:
        GateCheckResponse: Allowed outcome; denials are rendered by the
            exception handlers (429 rate_limit_exceeded, 403 verification_required).
    """
    decision = outcome.rate_limit
    verification = outcome.verification
    return GateCheckResponse(
        path=outcome.path,
        identity_kind=outcome.identity.kind.value,
        reason=decision.reason.value,
        window=decision.window.value if decision.window else None,
        limit=decision.limit,
        remaining=decision.remaining,
        reset_at=decision.reset_at,
        degraded=decision.degraded,
        verification_bypass=(
            verification.bypass_reason.value
            if verification is not None and verification.bypass_reason is not None
            else None
        ),
    )
