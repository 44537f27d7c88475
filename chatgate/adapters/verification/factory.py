"""Factory for creating proof verifier instances."""

from __future__ import annotations

import logging

from chatgate.adapters.verification.base import AbstractProofVerifier, ProofResult
from chatgate.adapters.verification.turnstile import TurnstileVerifier
from chatgate.core.config import TurnstileSettings, settings

logger = logging.getLogger(__name__)


class UnconfiguredVerifier(AbstractProofVerifier):
    """Verifier used when no secret is configured: every proof is rejected."""

    async def verify(self, token: str, *, remote_ip: str | None = None) -> ProofResult:
        logger.error(
            "turnstile.secret_missing",
            extra={"hint": "Set TURNSTILE_SECRET_KEY to enable human verification"},
        )
        return ProofResult(success=False, error_codes=["missing-input-secret"])


def create_proof_verifier(turnstile_settings: TurnstileSettings | None = None) -> AbstractProofVerifier:
    """Factory function to instantiate the proof verifier.

    Reads configuration from chatgate.core.config.settings (Pydantic Settings)
    unless explicit settings are passed.

    Returns:
        AbstractProofVerifier: Configured verifier instance.
    """
    cfg = turnstile_settings or settings.turnstile

    if not cfg.secret_key:
        return UnconfiguredVerifier()

    return TurnstileVerifier(
        secret_key=cfg.secret_key,
        verify_url=cfg.verify_url,
        timeout_seconds=cfg.timeout_seconds,
    )
