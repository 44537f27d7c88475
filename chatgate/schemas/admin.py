"""Pydantic schemas for the administrative endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from chatgate.schemas.identity import IdentityKind
from chatgate.utils.windows import WindowUnit


class WindowUsage(BaseModel):
    """Usage of one window for one identity."""

    unit: WindowUnit
    current: int = Field(..., ge=0, description="Requests counted in the current window")
    limit: int = Field(..., ge=0, description="Configured limit (0 = not enforced)")
    remaining: int | None = Field(None, description="Requests left; null when not enforced")
    window_start: int = Field(..., description="Window start, UNIX epoch seconds")
    reset_at: int = Field(..., description="Window reset, UNIX epoch seconds")
    exceeded: bool = Field(False, description="Whether the counter is above its limit")


class IdentityUsage(BaseModel):
    identity_key: str
    identity_kind: IdentityKind
    windows: list[WindowUsage]
    is_blocked: bool = Field(..., description="True when any enforced window is exhausted")


class IdentityPage(BaseModel):
    items: list[IdentityUsage]
    total: int
    page: int
    page_size: int
    total_pages: int


class ResetCountersRequest(BaseModel):
    window: Literal["minute", "hour", "day", "month", "all"] = "all"
    confirm: bool = Field(..., description="Must be true; resets are destructive")


class ResetCountersResponse(BaseModel):
    identity_key: str
    window: str
    deleted: int


class ClearVerificationResponse(BaseModel):
    identity_key: str
    cleared: bool
