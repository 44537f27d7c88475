"""Proof verifier adapters - the external human-verification collaborator."""

from chatgate.adapters.verification.base import NETWORK_ERROR_CODE, AbstractProofVerifier, ProofResult
from chatgate.adapters.verification.factory import UnconfiguredVerifier, create_proof_verifier
from chatgate.adapters.verification.turnstile import TurnstileVerifier

__all__ = [
    "NETWORK_ERROR_CODE",
    "AbstractProofVerifier",
    "ProofResult",
    "TurnstileVerifier",
    "UnconfiguredVerifier",
    "create_proof_verifier",
]
