"""Admin API key authentication logic.

The administrative endpoints (counter reads/resets, verification records) are
protected by static API keys validated against the comma-separated
ADMIN_API_KEYS environment variable. Gated chat traffic is never authenticated
here; it only goes through identity resolution.

Failures are raised as ``AuthenticationAppError`` so they are rendered with the
shared error envelope (403).
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header

from chatgate.core.config import settings
from chatgate.core.errors import AuthenticationAppError
from chatgate.core.logging import hash_for_log

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 , key3 "))
        ['key1', 'key2', 'key3']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def _matches_any(provided_key: str, valid_keys: set[str]) -> bool:
    # Compare against every key so timing does not reveal which one matched.
    matched = False
    for key in valid_keys:
        matched |= hmac.compare_digest(provided_key.encode(), key.encode())
    return matched


def validate_admin_api_key(provided_key: str | None) -> None:
    """Validate a provided admin API key against configured keys.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If the key is missing or invalid, or no keys are configured.
    """
    if not settings.admin.api_key_required:
        return

    valid_keys = parse_api_keys(settings.admin.api_keys)
    if not valid_keys:
        logger.error(
            "auth.admin_keys_not_configured",
            extra={"auth_required": True},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="Admin API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set ADMIN_API_KEYS or disable admin auth with ADMIN_API_KEY_REQUIRED=false"},
        )

    if not provided_key:
        logger.warning("auth.missing_key", extra={"api_key_present": False})
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key header.",
        )

    if not _matches_any(provided_key, valid_keys):
        logger.warning(
            "auth.invalid_key",
            extra={"api_key_hash": hash_for_log(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_admin_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency for admin API key authentication.

    Usage:
        router = APIRouter(dependencies=[Depends(verify_admin_api_key)])

    Raises:
        AuthenticationAppError: 403 Forbidden if authentication fails.
    """
    validate_admin_api_key(x_api_key)
    if settings.admin.api_key_required:
        logger.debug(
            "auth.success",
            extra={"api_key_hash": hash_for_log(x_api_key or "")},
        )
