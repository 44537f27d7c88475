"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Quota exhaustion and missing human verification are business outcomes, not
failures, but they are still raised as ``AppError`` subclasses from the HTTP
layer so the global handlers render them with the shared error envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    limit: int
    remaining: int
    reset_at: int
    window: str
    identity_kind: str
    operation: str
    error_codes: list[str]
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
        headers: Optional HTTP headers to attach when rendered as a response.
    """

    code: str
    message: str
    details: ErrorDetails | None = None
    headers: dict[str, str] | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class QuotaStoreError(AppError):
    """Raised by quota store adapters on connection, timeout or protocol errors."""


class ProofVerifierError(AppError):
    """Raised when the third-party proof verification cannot be performed."""


class RateLimitExceededError(AppError):
    """Raised by the HTTP layer when a caller exhausted one of its windows."""


class VerificationRequiredError(AppError):
    """Raised by the HTTP layer when a caller must complete a challenge first."""
