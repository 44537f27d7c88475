"""Proof-of-humanity verifier interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

# Reported by verifiers when the provider could not be reached.
NETWORK_ERROR_CODE = "network-error"


@dataclass(frozen=True)
class ProofResult:
    """Result of verifying a challenge token with the third-party service.

    Attributes:
        success: Whether the token proved a human solved the challenge.
        error_codes: Provider error codes when verification failed.
        hostname: Hostname the challenge was solved on, when reported.
        action: Action the widget was rendered for, when reported.
    """

    success: bool
    error_codes: list[str] = field(default_factory=list)
    hostname: str | None = None
    action: str | None = None


class AbstractProofVerifier(ABC):
    """Interface for proof verifiers (Cloudflare Turnstile and friends)."""

    @abstractmethod
    async def verify(self, token: str, *, remote_ip: str | None = None) -> ProofResult:
        """Verify a challenge response token.

        Args:
            token: Token produced by the client-side widget.
            remote_ip: Optional caller address forwarded to the provider.

        Returns:
            ProofResult: Never raises for provider/network failures; those are
                reported as unsuccessful results with error codes.
        """
        ...

    async def close(self) -> None:
        return None
