"""Administrative endpoints over the gate's storage.

Read current counts, reset current-window counters, and inspect or clear
verification records. All routes require the admin X-API-Key.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from chatgate.core.auth import verify_admin_api_key
from chatgate.core.dependencies import GateServices, get_services
from chatgate.core.errors import ValidationAppError
from chatgate.schemas.admin import (
    ClearVerificationResponse,
    IdentityPage,
    IdentityUsage,
    ResetCountersRequest,
    ResetCountersResponse,
)
from chatgate.schemas.identity import IdentityKey, IdentityKind
from chatgate.schemas.verification import VerificationStatusResponse
from chatgate.utils.windows import WindowUnit

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(verify_admin_api_key)],
)

Services = Annotated[GateServices, Depends(get_services)]


@router.get("/identities", response_model=IdentityPage)
async def list_identities(
    services: Services,
    kind: IdentityKind | None = Query(None, description="Filter by identity kind"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
) -> IdentityPage:
    """Identities with live counters in the current windows, busiest first."""
    return await services.admin.list_identities(kind=kind, page=page, page_size=page_size)


@router.get("/identities/{identity_key}", response_model=IdentityUsage)
async def get_identity_usage(identity_key: str, services: Services) -> IdentityUsage:
    """Current counts, limits and resets of every window for one identity."""
    return await services.admin.get_usage(IdentityKey.parse(identity_key))


@router.post("/identities/{identity_key}/reset", response_model=ResetCountersResponse)
async def reset_identity_counters(
    identity_key: str,
    payload: ResetCountersRequest,
    services: Services,
) -> ResetCountersResponse:
    """Delete current-window counters for one identity.

    Raises:
        ValidationAppError: 400 when the request is not confirmed.
    """
    if not payload.confirm:
        raise ValidationAppError(
            code="confirmation_required",
            message="Confirmation required for destructive action",
        )
    identity = IdentityKey.parse(identity_key)
    unit = None if payload.window == "all" else WindowUnit(payload.window)
    deleted = await services.admin.reset_counters(identity, unit)
    return ResetCountersResponse(identity_key=str(identity), window=payload.window, deleted=deleted)


@router.get("/identities/{identity_key}/verification", response_model=VerificationStatusResponse)
async def get_identity_verification(identity_key: str, services: Services) -> VerificationStatusResponse:
    identity = IdentityKey.parse(identity_key)
    status = await services.verification_gate.verification_status(identity)
    return VerificationStatusResponse(
        identity_kind=identity.kind.value,
        verified=status.verified,
        ttl_seconds=status.ttl_seconds,
        source=status.source,
    )


@router.delete("/identities/{identity_key}/verification", response_model=ClearVerificationResponse)
async def clear_identity_verification(identity_key: str, services: Services) -> ClearVerificationResponse:
    """Force the identity through a new challenge on its next gated request."""
    identity = IdentityKey.parse(identity_key)
    cleared = await services.verification_gate.clear(identity)
    return ClearVerificationResponse(identity_key=str(identity), cleared=cleared)
