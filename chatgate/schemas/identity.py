"""Caller identity value types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from chatgate.core.errors import ValidationAppError


class IdentityKind(str, Enum):
    JWT = "jwt"
    SESSION = "session"
    IP = "ip"
    ANONYMOUS = "anonymous"


# Kinds backed by an authenticated credential rather than network location.
AUTHENTICATED_KINDS = frozenset({IdentityKind.JWT, IdentityKind.SESSION})

ANONYMOUS_RAW = "shared"


@dataclass(frozen=True)
class IdentityKey:
    """Tagged caller identity.

    Rendered as ``"<kind>:<raw>"`` wherever it becomes part of a storage key.
    IP-derived identities only ever carry a digest of the address.

    Attributes:
        kind: Strategy that produced the identity.
        raw: Strategy-specific value (JWT subject, session id, IP digest).
    """

    kind: IdentityKind
    raw: str

    def __post_init__(self) -> None:
        if not self.raw:
            raise ValueError("identity raw value must be non-empty")

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.raw}"

    @property
    def is_authenticated(self) -> bool:
        return self.kind in AUTHENTICATED_KINDS

    @property
    def is_anonymous(self) -> bool:
        return self.kind is IdentityKind.ANONYMOUS

    @classmethod
    def anonymous(cls) -> "IdentityKey":
        return cls(kind=IdentityKind.ANONYMOUS, raw=ANONYMOUS_RAW)

    @classmethod
    def parse(cls, value: str) -> "IdentityKey":
        """Parse a rendered identity such as ``"jwt:user123"``.

        Only the first colon separates kind from raw, so raw values may
        themselves contain colons.

        Raises:
            ValidationAppError: If the kind is unknown or the raw part is empty.
        """
        kind_part, sep, raw = value.partition(":")
        try:
            kind = IdentityKind(kind_part)
        except ValueError as exc:
            raise ValidationAppError(
                code="invalid_identity_key",
                message=f"Unknown identity kind: '{kind_part}'",
                details={"hint": "Expected one of jwt, session, ip, anonymous"},
            ) from exc
        if not sep or not raw:
            raise ValidationAppError(
                code="invalid_identity_key",
                message="Identity key must have the form '<kind>:<value>'",
            )
        return cls(kind=kind, raw=raw)
