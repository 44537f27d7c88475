"""Human-verification gate.

Decides whether a caller must present fresh proof of humanity and remembers
successful verifications. The proof itself is checked by an external verifier
(see ``chatgate.adapters.verification``); this service only owns the policy and
the two-tier verification cache:

- the shared quota store (``verify:<identity>``) is authoritative whenever it
  answers;
- a bounded in-process cache mirrors every successful verification and is only
  consulted when the store cannot be reached.

Store failures follow ``FailurePolicy.FAIL_CLOSED`` by default: without a
recent local record the caller is treated as unverified.

The shared anonymous identity is never verifiable: it stands for every caller
that could not be identified, so one proof must not unlock all of them.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from chatgate.adapters.quota_store.base import AbstractQuotaStore
from chatgate.core.errors import QuotaStoreError
from chatgate.core.logging import hash_for_log, identity_fields
from chatgate.core.policies import FailurePolicy
from chatgate.schemas.identity import IdentityKey
from chatgate.schemas.verification import (
    BypassReason,
    GateDecision,
    VerificationRecord,
    VerificationSource,
    VerificationStatus,
)
from chatgate.services.config_provider import ConfigProvider
from chatgate.utils.local_cache import BoundedTTLCache
from chatgate.utils.windows import verification_key

logger = logging.getLogger(__name__)


class VerificationGate:
    """Verification requirement policy plus verification caching."""

    def __init__(
        self,
        store: AbstractQuotaStore,
        config_provider: ConfigProvider,
        *,
        local_cache: BoundedTTLCache[int] | None = None,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_CLOSED,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._config_provider = config_provider
        self._local = local_cache or BoundedTTLCache[int](clock=clock)
        self._failure_policy = failure_policy
        self._clock = clock

    @property
    def failure_policy(self) -> FailurePolicy:
        return self._failure_policy

    async def evaluate(self, identity: IdentityKey) -> GateDecision:
        """Apply the verification policy to an identity.

        Decision order:
            1. Gate disabled: no challenge.
            2. Authenticated (jwt/session) callers with bypass enabled: no challenge.
            3. IP/anonymous callers when the policy does not require them: no challenge.
            4. A live verification record exists: no challenge.
            5. Otherwise a challenge is required.
        """
        policy = self._config_provider.current().verification

        if not policy.enabled:
            return GateDecision(required=False, verified=False, bypass_reason=BypassReason.DISABLED)

        if identity.is_authenticated:
            if policy.bypass_verified_identities:
                return GateDecision(
                    required=False,
                    verified=False,
                    bypass_reason=BypassReason.AUTHENTICATED,
                )
        elif not policy.required_for_anonymous:
            return GateDecision(
                required=False,
                verified=False,
                bypass_reason=BypassReason.NOT_REQUIRED,
            )

        if await self.is_verified(identity):
            return GateDecision(required=False, verified=True, bypass_reason=BypassReason.CACHED)

        logger.info(
            "verification.challenge_required",
            extra={
                **identity_fields(identity),
            },
        )
        return GateDecision(required=True, verified=False)

    async def require_challenge(self, identity: IdentityKey) -> bool:
        """Return True when the caller must complete a challenge before proceeding."""
        return (await self.evaluate(identity)).required

    async def is_verified(self, identity: IdentityKey) -> bool:
        """Return True when a non-expired verification record exists.

        The shared store answers authoritatively; the local cache is only used
        when the store call fails.
        """
        if identity.is_anonymous:
            return False

        key = verification_key(identity)
        try:
            verified_at = await self._store.get(key)
        except QuotaStoreError as exc:
            return self._on_store_failure(identity, key, exc)
        return self._is_fresh(verified_at)

    async def record_verified(self, identity: IdentityKey, proof_token: str) -> VerificationRecord:
        """Remember a successful verification for the configured cache duration.

        Writes the shared store and mirrors the record locally. A store failure
        is logged, not raised; the local mirror still protects this instance.

        Args:
            identity: Verified caller identity.
            proof_token: Token that passed external verification (never stored).

        Returns:
            VerificationRecord describing what was recorded.
        """
        if identity.is_anonymous:
            logger.warning(
                "verification.anonymous_not_recorded",
                extra={"proof_hash": hash_for_log(proof_token)},
            )
            return VerificationRecord(identity_key=str(identity), verified_at=int(self._clock()), ttl_seconds=0)

        ttl = self._config_provider.current().verification.cache_duration
        verified_at = int(self._clock())
        key = verification_key(identity)
        stored = True

        try:
            await self._store.set(key, verified_at, ttl_seconds=ttl)
        except QuotaStoreError as exc:
            stored = False
            logger.error(
                "verification.store_write_failed",
                extra={
                    **identity_fields(identity),
                    "error_code": exc.code,
                    "error_msg": exc.message,
                },
            )

        self._local.set(key, verified_at, ttl_seconds=ttl)
        logger.info(
            "verification.recorded",
            extra={
                **identity_fields(identity),
                "proof_hash": hash_for_log(proof_token),
                "ttl_s": ttl,
                "stored": stored,
            },
        )
        return VerificationRecord(identity_key=str(identity), verified_at=verified_at, ttl_seconds=ttl)

    async def verification_status(self, identity: IdentityKey) -> VerificationStatus:
        """Verification state with remaining lifetime, for clients and admin tooling."""
        unverified = VerificationStatus(verified=False, ttl_seconds=None, source=VerificationSource.NONE)
        if identity.is_anonymous:
            return unverified

        key = verification_key(identity)
        source = VerificationSource.STORE
        try:
            verified_at = await self._store.get(key)
            record_ttl = await self._store.ttl(key) if verified_at is not None else None
        except QuotaStoreError as exc:
            logger.warning(
                "verification.status_store_unavailable",
                extra={"error_code": exc.code},
            )
            source = VerificationSource.LOCAL
            verified_at = self._local.get(key)
            record_ttl = self._local.ttl(key)

        remaining = self._remaining_seconds(verified_at, record_ttl)
        if remaining is None:
            return unverified
        return VerificationStatus(verified=True, ttl_seconds=remaining, source=source)

    async def clear(self, identity: IdentityKey) -> bool:
        """Forget any verification for identity in both tiers.

        Raises:
            QuotaStoreError: If the shared record could not be deleted. The
                local entry is kept in that case.
        """
        key = verification_key(identity)
        removed = await self._store.delete(key)
        local_removed = self._local.delete(key)
        logger.info(
            "verification.cleared",
            extra={
                **identity_fields(identity),
            },
        )
        return bool(removed) or local_removed

    def local_cache_stats(self) -> dict[str, int]:
        return self._local.stats()

    def _is_fresh(self, verified_at: int | None) -> bool:
        return self._remaining_seconds(verified_at) is not None

    def _remaining_seconds(self, verified_at: int | None, record_ttl: int | None = None) -> int | None:
        """Seconds a verification is still honoured, or None once it has lapsed.

        The current cache duration applies to records written under a longer
        one; the record's own expiry caps the result.
        """
        if verified_at is None:
            return None
        ttl = self._config_provider.current().verification.cache_duration
        remaining = math.ceil(verified_at + ttl - self._clock())
        if record_ttl is not None:
            remaining = min(remaining, record_ttl)
        return remaining if remaining > 0 else None

    def _on_store_failure(self, identity: IdentityKey, key: str, exc: QuotaStoreError) -> bool:
        if self._failure_policy is FailurePolicy.FAIL_OPEN:
            verified = True
        else:
            verified = self._is_fresh(self._local.get(key))
        logger.warning(
            "verification.store_unavailable",
            extra={
                **identity_fields(identity),
                "failure_policy": self._failure_policy.value,
                "verified": verified,
                "error_code": exc.code,
            },
        )
        return verified
