"""Application factory for the gate service.

Centralizes app construction (services, middleware, handlers, routers) so tests
can build isolated apps around an in-memory store and a static config provider.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from chatgate.adapters.quota_store import AbstractQuotaStore
from chatgate.adapters.verification import AbstractProofVerifier
from chatgate.api.routes import admin_router, gate_router, health_router, verification_router
from chatgate.core.config import Settings, settings as default_settings
from chatgate.core.dependencies import build_services
from chatgate.core.exception_handlers import setup_exception_handlers
from chatgate.core.logging import configure_logging
from chatgate.core.middleware import request_id_middleware
from chatgate.core.openapi import apply_openapi_customizations
from chatgate.services.config_provider import ConfigProvider

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Settings | None = None,
    *,
    store: AbstractQuotaStore | None = None,
    config_provider: ConfigProvider | None = None,
    proof_verifier: AbstractProofVerifier | None = None,
    clock: Callable[[], float] = time.time,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from (defaults to the global settings).
        store: Optional quota store override.
        config_provider: Optional gate config provider override.
        proof_verifier: Optional proof verifier override.
        clock: Time source shared by the gate services.
        configure_logs: Install the JSON logging configuration.

    Returns:
        Configured FastAPI app with services, middleware, handlers and routers.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(cfg.log)

    services = build_services(
        cfg,
        store=store,
        config_provider=config_provider,
        proof_verifier=proof_verifier,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "app.startup",
            extra={
                "app_env": cfg.app_env,
                "store_backend": cfg.store.backend,
                "store_timeout_ms": cfg.store.timeout_ms,
            },
        )
        try:
            yield
        finally:
            await services.aclose()
            logger.info("app.shutdown")

    app = FastAPI(
        title="chatgate",
        description=(
            "Gate for chat-proxy API traffic: resolves callers to a stable "
            "identity, enforces per-identity minute/hour/day/month quotas and "
            "optionally requires human verification from unverified callers."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.gate_services = services

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(gate_router, prefix="/v1")
    app.include_router(verification_router, prefix="/v1")
    app.include_router(admin_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
