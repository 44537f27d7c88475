"""Caller identity resolution.

Walks the configured identity waterfall (``jwt-sub``, ``session-cookie``,
``ip``) and returns the first identity a strategy can produce. Resolution never
raises: a strategy that errors is logged and treated as "no identity here", and
when every strategy comes up empty the caller shares the anonymous bucket.

Trust model:
- ``jwt-sub`` with a configured secret verifies signature and expiry.
- Without a secret, unverified subjects are only accepted when
  ``allow_unverified_jwt`` is explicitly enabled (development mode). Anyone can
  mint such a token, so the mode is announced with a warning at startup.
- ``session-cookie`` accepts any non-empty cookie value as-is.
- ``ip`` never keeps the raw address, only a truncated SHA-256 digest.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from fastapi import Request
from jose import JWTError, jwt

from chatgate.core.logging import identity_fields
from chatgate.schemas.gate_config import IdentityStrategy
from chatgate.schemas.identity import IdentityKey, IdentityKind
from chatgate.services.config_provider import ConfigProvider

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "
IP_DIGEST_CHARS = 16


@dataclass(frozen=True)
class AuthMaterial:
    """Request inputs relevant to identity resolution, decoupled from the web framework."""

    authorization: str | None = None
    cookies: Mapping[str, str] = field(default_factory=dict)
    forwarded_for: str | None = None
    real_ip: str | None = None
    cf_connecting_ip: str | None = None
    client_host: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> "AuthMaterial":
        headers = request.headers
        return cls(
            authorization=headers.get("authorization"),
            cookies=dict(request.cookies),
            forwarded_for=headers.get("x-forwarded-for"),
            real_ip=headers.get("x-real-ip"),
            cf_connecting_ip=headers.get("cf-connecting-ip"),
            client_host=request.client.host if request.client else None,
        )

    def client_address(self) -> str | None:
        """First address of the proxy chain, falling back to the direct connection."""
        if self.forwarded_for:
            first = self.forwarded_for.split(",")[0].strip()
            if first:
                return first
        for candidate in (self.real_ip, self.cf_connecting_ip, self.client_host):
            if candidate and candidate.strip():
                return candidate.strip()
        return None


def hash_ip(address: str) -> str:
    """One-way digest of a client address, truncated for key brevity."""
    return hashlib.sha256(address.encode()).hexdigest()[:IP_DIGEST_CHARS]


class IdentityResolver:
    """Resolve requests to a single tagged ``IdentityKey``."""

    def __init__(
        self,
        config_provider: ConfigProvider,
        *,
        jwt_secret: str | None = None,
        jwt_algorithms: tuple[str, ...] = ("HS256",),
        allow_unverified_jwt: bool = False,
        session_cookie_name: str = "sessionId",
    ) -> None:
        """Initialize the resolver.

        Args:
            config_provider: Source of the identity order.
            jwt_secret: Secret used to verify bearer tokens.
            jwt_algorithms: Accepted signing algorithms.
            allow_unverified_jwt: Trust unverified subjects when no secret is set.
            session_cookie_name: Cookie holding the session id.
        """
        self._config_provider = config_provider
        self._jwt_secret = jwt_secret or None
        self._jwt_algorithms = list(jwt_algorithms)
        self._allow_unverified_jwt = allow_unverified_jwt
        self._session_cookie_name = session_cookie_name
        self._strategies: dict[IdentityStrategy, Callable[[AuthMaterial], IdentityKey | None]] = {
            IdentityStrategy.JWT_SUB: self._from_jwt,
            IdentityStrategy.SESSION_COOKIE: self._from_session_cookie,
            IdentityStrategy.IP: self._from_ip,
        }

        if self._jwt_secret is None and allow_unverified_jwt:
            logger.warning(
                "identity.unverified_jwt_mode_enabled",
                extra={
                    "hint": "JWT subjects are trusted without signature checks; never enable in production",
                },
            )

    def resolve(self, material: AuthMaterial) -> IdentityKey:
        """Return the identity of the first strategy that succeeds.

        Args:
            material: Request auth material.

        Returns:
            IdentityKey: The resolved identity, or the shared anonymous identity.
        """
        for strategy in self._config_provider.current().identity_order:
            try:
                identity = self._strategies[strategy](material)
            except Exception as exc:
                logger.warning(
                    "identity.strategy_failed",
                    extra={
                        "strategy": strategy.value,
                        "error_type": type(exc).__name__,
                    },
                )
                continue
            if identity is not None:
                logger.debug(
                    "identity.resolved",
                    extra={
                        "strategy": strategy.value,
                        **identity_fields(identity),
                    },
                )
                return identity

        logger.debug("identity.anonymous")
        return IdentityKey.anonymous()

    def _from_jwt(self, material: AuthMaterial) -> IdentityKey | None:
        header = material.authorization
        if not header or not header.lower().startswith(BEARER_PREFIX):
            return None
        token = header[len(BEARER_PREFIX):].strip()
        if not token:
            return None

        claims = self._jwt_claims(token)
        if claims is None:
            return None
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            return None
        return IdentityKey(kind=IdentityKind.JWT, raw=subject)

    def _jwt_claims(self, token: str) -> Mapping[str, Any] | None:
        if self._jwt_secret is not None:
            try:
                return jwt.decode(
                    token,
                    self._jwt_secret,
                    algorithms=self._jwt_algorithms,
                    options={"verify_aud": False},
                )
            except JWTError as exc:
                logger.info(
                    "identity.jwt_rejected",
                    extra={"error_type": type(exc).__name__},
                )
                return None

        if not self._allow_unverified_jwt:
            return None

        try:
            return jwt.get_unverified_claims(token)
        except JWTError as exc:
            logger.info(
                "identity.jwt_unparseable",
                extra={"error_type": type(exc).__name__},
            )
            return None

    def _from_session_cookie(self, material: AuthMaterial) -> IdentityKey | None:
        session_id = material.cookies.get(self._session_cookie_name)
        if not session_id:
            return None
        return IdentityKey(kind=IdentityKind.SESSION, raw=session_id)

    def _from_ip(self, material: AuthMaterial) -> IdentityKey | None:
        address = material.client_address()
        if address is None:
            return None
        return IdentityKey(kind=IdentityKind.IP, raw=hash_ip(address))
