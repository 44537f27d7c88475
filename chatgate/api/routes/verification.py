"""Human-verification endpoints.

The client-side challenge widget produces a token; posting it here verifies it
with the external proof verifier and, on success, records the caller's
identity as verified for the configured cache duration.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from chatgate.adapters.verification import NETWORK_ERROR_CODE
from chatgate.core.dependencies import GateServices, get_services
from chatgate.core.errors import AuthenticationAppError, ProofVerifierError
from chatgate.core.logging import identity_fields
from chatgate.schemas.verification import VerificationStatusResponse, VerifyProofRequest
from chatgate.services.identity_resolver import AuthMaterial

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Verification"])


@router.post("/verification", response_model=VerificationStatusResponse)
async def submit_proof(
    payload: VerifyProofRequest,
    request: Request,
    services: Annotated[GateServices, Depends(get_services)],
) -> VerificationStatusResponse:
    """Verify a challenge token and remember the caller as verified.

    Raises:
        AuthenticationAppError: 403 ``verification_failed`` when the proof is rejected
            or the caller has no identity to record it against.
        ProofVerifierError: 502 ``verification_unavailable`` when the provider cannot be reached.
    """
    material = AuthMaterial.from_request(request)
    identity = services.identity_resolver.resolve(material)
    if identity.is_anonymous:
        logger.warning("verification.anonymous_refused")
        raise AuthenticationAppError(
            code="verification_failed",
            message="Verification needs an identifiable caller. Sign in or retry from a direct connection.",
            details={"reason": "anonymous_identity"},
        )

    result = await services.proof_verifier.verify(payload.token, remote_ip=material.client_address())
    if not result.success and NETWORK_ERROR_CODE in result.error_codes:
        raise ProofVerifierError(
            code="verification_unavailable",
            message="Human verification is temporarily unavailable. Please try again.",
            details={"error_codes": result.error_codes},
        )
    if not result.success:
        logger.warning(
            "verification.proof_rejected",
            extra={
                **identity_fields(identity),
                "error_codes": result.error_codes,
            },
        )
        raise AuthenticationAppError(
            code="verification_failed",
            message="The security challenge could not be verified. Please try again.",
            details={"error_codes": result.error_codes},
        )

    record = await services.verification_gate.record_verified(identity, payload.token)
    status = await services.verification_gate.verification_status(identity)
    return VerificationStatusResponse(
        identity_kind=identity.kind.value,
        verified=True,
        ttl_seconds=status.ttl_seconds or record.ttl_seconds,
        source=status.source,
    )


@router.get("/verification/status", response_model=VerificationStatusResponse)
async def verification_status(
    request: Request,
    services: Annotated[GateServices, Depends(get_services)],
) -> VerificationStatusResponse:
    """Verification state of the calling identity."""
    identity = services.identity_resolver.resolve(AuthMaterial.from_request(request))
    status = await services.verification_gate.verification_status(identity)
    return VerificationStatusResponse(
        identity_kind=identity.kind.value,
        verified=status.verified,
        ttl_seconds=status.ttl_seconds,
        source=status.source,
    )
