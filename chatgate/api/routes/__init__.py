from __future__ import annotations

from chatgate.api.routes.admin import router as admin_router
from chatgate.api.routes.gate import router as gate_router
from chatgate.api.routes.health import router as health_router
from chatgate.api.routes.verification import router as verification_router

__all__ = ["admin_router", "gate_router", "health_router", "verification_router"]
