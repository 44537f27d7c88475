"""Pydantic schema for the hot-reloadable gate configuration file.

The file uses camelCase keys, for example::

    {
      "identityOrder": ["jwt-sub", "session-cookie", "ip"],
      "limits": {"minute": 10, "hour": 100, "day": 1000, "month": 30000},
      "routesInScope": ["/api/proxy/projects", "/api/proxy/user"],
      "verification": {
        "enabled": true,
        "bypassVerifiedIdentities": true,
        "requiredForAnonymous": true,
        "cacheDuration": 300
      }
    }
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chatgate.utils.windows import WindowUnit


class IdentityStrategy(str, Enum):
    JWT_SUB = "jwt-sub"
    SESSION_COOKIE = "session-cookie"
    IP = "ip"


class _FileModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class WindowSpec(_FileModel):
    """Quota for one window unit. A limit of 0 means the window is not enforced."""

    unit: WindowUnit
    limit: int = Field(0, ge=0)

    @property
    def enforced(self) -> bool:
        return self.limit > 0


class WindowLimits(_FileModel):
    """Per-unit request limits. Missing units default to 0 (not enforced)."""

    minute: int = Field(0, ge=0, description="Requests per calendar minute")
    hour: int = Field(0, ge=0, description="Requests per hour")
    day: int = Field(0, ge=0, description="Requests per UTC day")
    month: int = Field(0, ge=0, description="Requests per UTC calendar month")

    def for_unit(self, unit: WindowUnit) -> int:
        return getattr(self, unit.value)


class VerificationPolicy(_FileModel):
    """Human-verification gate policy."""

    enabled: bool = Field(False, description="Require proof of humanity at all")
    bypass_verified_identities: bool = Field(
        True,
        description="Never challenge callers identified by JWT or session",
    )
    required_for_anonymous: bool = Field(
        True,
        description="Challenge IP-identified and anonymous callers",
    )
    cache_duration: int = Field(
        300,
        ge=1,
        description="Seconds a successful verification is remembered",
    )


class GateConfig(_FileModel):
    """Resolved, read-only gate configuration snapshot."""

    identity_order: tuple[IdentityStrategy, ...] = Field(
        (
            IdentityStrategy.JWT_SUB,
            IdentityStrategy.SESSION_COOKIE,
            IdentityStrategy.IP,
        ),
        min_length=1,
    )
    limits: WindowLimits = Field(
        default_factory=lambda: WindowLimits(minute=10, hour=100, day=1000, month=30000)
    )
    routes_in_scope: tuple[str, ...] = ("/api/proxy/projects", "/api/proxy/user")
    verification: VerificationPolicy = Field(default_factory=VerificationPolicy)

    @field_validator("identity_order")
    @classmethod
    def _no_duplicate_strategies(
        cls, value: tuple[IdentityStrategy, ...]
    ) -> tuple[IdentityStrategy, ...]:
        if len(set(value)) != len(value):
            raise ValueError("identityOrder must not repeat a strategy")
        return value

    @property
    def windows(self) -> list[WindowSpec]:
        """All window specs, tightest unit first."""
        return [WindowSpec(unit=unit, limit=self.limits.for_unit(unit)) for unit in WindowUnit]

    @property
    def enforced_windows(self) -> list[WindowSpec]:
        return [spec for spec in self.windows if spec.enforced]


DEFAULT_GATE_CONFIG = GateConfig()
