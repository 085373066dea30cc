"""Models for per-identity usage tracking."""

from datetime import date, datetime

from pydantic import Field

from .questions import CamelModel


class UsageRecord(CamelModel):
    """Daily usage counter for one identity."""

    identity: str
    usage_date: date
    count: int = Field(default=0, ge=0)


class UsageDecision(CamelModel):
    """Result of a quota check."""

    allowed: bool
    remaining: int = Field(..., ge=0)
    current_usage: int = Field(..., ge=0)
    limit: int
    reset_at: datetime
    durable: bool = Field(default=True, description="False when served by the in-memory fallback")


class UsageStats(CamelModel):
    """Aggregated usage for one identity."""

    today: int = 0
    this_week: int = 0
    this_month: int = 0
    total: int = 0
    daily_limit: int
    remaining_today: int
    durable: bool = True
