"""Cloudflare Turnstile verifier adapter."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from chatgate.adapters.verification.base import NETWORK_ERROR_CODE, AbstractProofVerifier, ProofResult

logger = logging.getLogger(__name__)


class TurnstileVerifier(AbstractProofVerifier):
    """Server-side verification against Turnstile's siteverify endpoint.

    Uses a shared ``httpx.AsyncClient``; a custom client can be injected (tests
    pass one built on ``httpx.MockTransport``).
    """

    def __init__(
        self,
        secret_key: str,
        *,
        verify_url: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify",
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the verifier.

        Args:
            secret_key: Turnstile secret key.
            verify_url: siteverify endpoint URL.
            timeout_seconds: Timeout for requests in seconds.
            client: Optional preconfigured HTTP client.
        """
        self._secret_key = secret_key
        self._verify_url = verify_url
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def verify(self, token: str, *, remote_ip: str | None = None) -> ProofResult:
        form: dict[str, Any] = {"secret": self._secret_key, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            response = await self._client.post(self._verify_url, data=form)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "turnstile.request_failed",
                extra={
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc)[:200],
                },
            )
            return ProofResult(success=False, error_codes=[NETWORK_ERROR_CODE])

        result = ProofResult(
            success=bool(payload.get("success")),
            error_codes=list(payload.get("error-codes") or []),
            hostname=payload.get("hostname"),
            action=payload.get("action"),
        )
        if not result.success:
            logger.info(
                "turnstile.rejected",
                extra={"error_codes": result.error_codes},
            )
        return result

    async def close(self) -> None:
        await self._client.aclose()
