"""Quota and rate-limit models."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from lectern.models.base import DomainModel


class QuotaRecord(DomainModel):
    """A usage counter for one key within one window."""

    key: str
    window_start: datetime
    window_seconds: float
    count: int = Field(default=0, ge=0)


class QuotaCheckResult(DomainModel):
    """Outcome of a check-and-consume against the daily quota."""

    allowed: bool
    usage: int = Field(ge=0)
    limit: int = Field(ge=0)
    remaining: int = Field(ge=0)
    is_pro: bool = False


class QuotaStatus(DomainModel):
    """Read-only view of a user's quota for display."""

    can_send: bool
    usage: int = Field(ge=0)
    limit: int = Field(ge=0)
    remaining: int = Field(ge=0)
    is_pro: bool = False


class SystemLimits(DomainModel):
    """Static limits, identical for every user."""

    daily_limit_free: int
    daily_limit_pro: int
    rate_limit_free_requests: int
    rate_limit_free_window: str
    rate_limit_pro_requests: int
    rate_limit_pro_window: str
    max_file_size_mb: int


class RateLimitResult(DomainModel):
    success: bool
    limit: int = Field(ge=0)
    remaining: int = Field(ge=0)
    reset_at: float = 0.0
