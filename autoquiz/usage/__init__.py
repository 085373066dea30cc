"""Per-identity usage tracking and quota enforcement."""

from .guard import UsageGuard
from .store import InMemoryUsageStore, SqlUsageStore, UnavailableUsageStore, UsageStore

__all__ = ["UsageGuard", "UsageStore", "InMemoryUsageStore", "SqlUsageStore", "UnavailableUsageStore"]
