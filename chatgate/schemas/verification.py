"""Verification gate types and request/response schemas."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class BypassReason(str, Enum):
    DISABLED = "disabled"
    AUTHENTICATED = "authenticated"
    NOT_REQUIRED = "not_required"
    CACHED = "cached"


class VerificationSource(str, Enum):
    STORE = "store"
    LOCAL = "local"
    NONE = "none"


@dataclass(frozen=True)
class VerificationRecord:
    """A successful human verification.

    Attributes:
        identity_key: Rendered identity that was verified.
        verified_at: UNIX epoch seconds of the verification.
        ttl_seconds: How long the verification is honoured.
    """

    identity_key: str
    verified_at: int
    ttl_seconds: int


@dataclass(frozen=True)
class GateDecision:
    """Outcome of the verification policy for one identity."""

    required: bool
    verified: bool
    bypass_reason: BypassReason | None = None


@dataclass(frozen=True)
class VerificationStatus:
    verified: bool
    ttl_seconds: int | None
    source: VerificationSource


class VerifyProofRequest(BaseModel):
    """Proof token produced by the client-side challenge widget."""

    token: str = Field(..., min_length=1, max_length=4096, description="Challenge response token")
    action: str | None = Field(
        None,
        max_length=64,
        description="Optional action name the widget was rendered for",
    )


class VerificationStatusResponse(BaseModel):
    identity_kind: str = Field(..., description="Kind of the resolved identity")
    verified: bool
    ttl_seconds: int | None = Field(None, description="Seconds until re-verification is required")
    source: VerificationSource
