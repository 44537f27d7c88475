from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from chatgate.core.dependencies import GateServices, get_services

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(
    services: Annotated[GateServices, Depends(get_services)],
) -> JSONResponse:
    """Readiness check including a quota store ping.

    The gate keeps serving without the store (quotas fail open), so a failed
    ping reports "degraded" with HTTP 503 rather than taking the service down.
    """

    if await services.store.ping():
        return JSONResponse({"status": "ok", "store": "ok"})
    return JSONResponse({"status": "degraded", "store": "unavailable"}, status_code=503)
