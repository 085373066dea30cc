"""Per-identity daily quota enforcement."""

import threading
from datetime import date, datetime, time, timedelta, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError

from autoquiz.config import Settings, get_settings
from autoquiz.errors import UsageStoreUnavailableError
from autoquiz.models import UsageDecision, UsageStats

from .store import InMemoryUsageStore, UsageStore

logger = structlog.get_logger(__name__)

# Failures that switch the guard to its in-memory fallback
STORE_ERRORS = (SQLAlchemyError, UsageStoreUnavailableError, OSError)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UsageGuard:
    """Daily usage gate keyed by (identity, UTC date).

    Counters reset implicitly because the key is date-scoped. When the
    durable store fails, the guard fails open onto a bounded in-memory
    counter and marks its decisions ``durable=False``.
    """

    def __init__(
        self,
        store: UsageStore,
        settings: Settings | None = None,
        clock=None,
        fallback: UsageStore | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.clock = clock or utc_now
        self.fallback = fallback or InMemoryUsageStore(max_entries=self.settings.usage_fallback_max_entries)
        self.daily_limit = self.settings.auto_create_daily_limit
        self._last_prune_day: date | None = None
        self._prune_lock = threading.Lock()

    def today(self) -> date:
        return self.clock().astimezone(timezone.utc).date()

    def reset_at(self, day: date) -> datetime:
        """Next UTC midnight after ``day``."""
        return datetime.combine(day + timedelta(days=1), time.min, tzinfo=timezone.utc)

    def check_and_increment(self, identity: str, limit: int | None = None) -> UsageDecision:
        """Atomically consume one unit of quota if any remains.

        Args:
            identity: Request identity (client IP).
            limit: Daily limit, defaults to the configured limit.

        Returns:
            UsageDecision; ``allowed`` is False when the quota is exhausted.
        """
        limit = self.daily_limit if limit is None else limit
        day = self.today()
        self._maybe_prune(day)

        durable = True
        try:
            allowed, count = self.store.increment_if_below(identity, day, limit)
        except STORE_ERRORS as e:
            logger.warning("usage_store_unavailable", operation="increment", error=str(e))
            durable = False
            allowed, count = self.fallback.increment_if_below(identity, day, limit)

        decision = UsageDecision(
            allowed=allowed,
            remaining=max(0, limit - count),
            current_usage=count,
            limit=limit,
            reset_at=self.reset_at(day),
            durable=durable,
        )
        logger.info(
            "usage_checked",
            identity=identity,
            allowed=allowed,
            current_usage=count,
            limit=limit,
            durable=durable,
        )
        return decision

    def status(self, identity: str, limit: int | None = None) -> UsageDecision:
        """Report quota state without consuming any."""
        limit = self.daily_limit if limit is None else limit
        day = self.today()
        count, durable = self._read(lambda store: store.get_count(identity, day), "status")
        return UsageDecision(
            allowed=count < limit,
            remaining=max(0, limit - count),
            current_usage=count,
            limit=limit,
            reset_at=self.reset_at(day),
            durable=durable,
        )

    def stats(self, identity: str) -> UsageStats:
        """Usage for today, the last 7 and 30 days, and all time."""
        day = self.today()

        def collect(store: UsageStore) -> tuple[int, int, int, int]:
            return (
                store.get_count(identity, day),
                store.sum_between(identity, day - timedelta(days=6), day),
                store.sum_between(identity, day - timedelta(days=29), day),
                store.total(identity),
            )

        (today, week, month, total), durable = self._read(collect, "stats")
        return UsageStats(
            today=today,
            this_week=week,
            this_month=month,
            total=total,
            daily_limit=self.daily_limit,
            remaining_today=max(0, self.daily_limit - today),
            durable=durable,
        )

    def prune_stale(self) -> int:
        """Delete records older than the retention window."""
        cutoff = self.today() - timedelta(days=self.settings.usage_retention_days)
        removed = self.fallback.prune(cutoff)
        try:
            removed += self.store.prune(cutoff)
        except STORE_ERRORS as e:
            logger.warning("usage_store_unavailable", operation="prune", error=str(e))
        if removed:
            logger.info("usage_records_pruned", removed=removed, before=str(cutoff))
        return removed

    def _read(self, operation, name: str):
        try:
            return operation(self.store), True
        except STORE_ERRORS as e:
            logger.warning("usage_store_unavailable", operation=name, error=str(e))
            return operation(self.fallback), False

    def _maybe_prune(self, day: date) -> None:
        with self._prune_lock:
            if self._last_prune_day == day:
                return
            self._last_prune_day = day
        self.prune_stale()
