"""Service wiring and FastAPI dependency providers.

All gate services are constructed once per application by ``build_services``
and stored on ``app.state``. Routes receive them through ``get_services``, so
tests can build an app around an in-memory store and a static config provider
(or override the dependency) instead of patching module globals.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from chatgate.adapters.quota_store import AbstractQuotaStore, create_quota_store
from chatgate.adapters.verification import AbstractProofVerifier, create_proof_verifier
from chatgate.core.config import Settings
from chatgate.services.admin_query import AdminQueryService
from chatgate.services.config_provider import ConfigProvider, FileConfigProvider
from chatgate.services.identity_resolver import IdentityResolver
from chatgate.services.rate_limiter import RateLimiter
from chatgate.services.verification_gate import VerificationGate
from chatgate.utils.local_cache import BoundedTTLCache


@dataclass
class GateServices:
    """Container of the services shared by every request of one app."""

    store: AbstractQuotaStore
    config_provider: ConfigProvider
    identity_resolver: IdentityResolver
    rate_limiter: RateLimiter
    verification_gate: VerificationGate
    admin: AdminQueryService
    proof_verifier: AbstractProofVerifier

    async def aclose(self) -> None:
        await self.proof_verifier.close()
        await self.store.close()


def build_services(
    app_settings: Settings,
    *,
    store: AbstractQuotaStore | None = None,
    config_provider: ConfigProvider | None = None,
    proof_verifier: AbstractProofVerifier | None = None,
    clock: Callable[[], float] = time.time,
) -> GateServices:
    """Construct the gate services from settings, honouring explicit overrides.

    Args:
        app_settings: Process settings.
        store: Quota store to use instead of the configured backend.
        config_provider: Config provider to use instead of the JSON file.
        proof_verifier: Proof verifier to use instead of Turnstile.
        clock: Time source shared by every service.

    Returns:
        GateServices: Fully wired services.
    """
    gate = app_settings.gate
    store = store or create_quota_store(app_settings.store)
    config_provider = config_provider or FileConfigProvider(gate.resolved_config_path)

    return GateServices(
        store=store,
        config_provider=config_provider,
        identity_resolver=IdentityResolver(
            config_provider,
            jwt_secret=gate.jwt_secret,
            jwt_algorithms=gate.jwt_algorithm_list,
            allow_unverified_jwt=gate.allow_unverified_jwt,
            session_cookie_name=gate.session_cookie_name,
        ),
        rate_limiter=RateLimiter(store, config_provider, clock=clock),
        verification_gate=VerificationGate(
            store,
            config_provider,
            local_cache=BoundedTTLCache[int](gate.local_cache_max_entries, clock=clock),
            clock=clock,
        ),
        admin=AdminQueryService(store, config_provider, clock=clock),
        proof_verifier=proof_verifier or create_proof_verifier(app_settings.turnstile),
    )


def get_services(request: Request) -> GateServices:
    """FastAPI dependency returning the services of the current app."""
    return request.app.state.gate_services
