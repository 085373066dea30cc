"""Usage store interface with SQL and in-memory implementations."""

import threading
from abc import ABC, abstractmethod
from datetime import date, datetime

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from autoquiz.errors import UsageStoreUnavailableError
from autoquiz.models import UsageRecord

from .database import AutoCreateUsage, create_session_factory

logger = structlog.get_logger(__name__)


class UsageStore(ABC):
    """Durable per-(identity, date) counters with an atomic conditional increment."""

    @abstractmethod
    def increment_if_below(self, identity: str, day: date, limit: int) -> tuple[bool, int]:
        """Increment the counter only if it is below ``limit``.

        The check and the increment are one atomic step.

        Returns:
            Tuple of (incremented, count after the operation).
        """

    @abstractmethod
    def get_record(self, identity: str, day: date) -> UsageRecord:
        """Record for one day; a zero-count record when none is stored."""

    def get_count(self, identity: str, day: date) -> int:
        return self.get_record(identity, day).count

    @abstractmethod
    def sum_between(self, identity: str, start: date, end: date) -> int:
        """Sum of counts for ``start <= day <= end``."""

    @abstractmethod
    def total(self, identity: str) -> int:
        """Sum of all stored counts for the identity."""

    @abstractmethod
    def prune(self, before: date) -> int:
        """Delete records dated before ``before``. Returns rows removed."""


class InMemoryUsageStore(UsageStore):
    """Process-local store guarded by a lock.

    Used in tests and as the non-durable fallback when the database is
    unavailable. ``max_entries`` bounds memory; the oldest days are evicted
    first.
    """

    def __init__(self, max_entries: int = 10000):
        self.max_entries = max_entries
        self._counts: dict[tuple[str, date], int] = {}
        self._lock = threading.Lock()

    def increment_if_below(self, identity: str, day: date, limit: int) -> tuple[bool, int]:
        key = (identity, day)
        with self._lock:
            current = self._counts.get(key, 0)
            if current >= limit:
                return False, current
            self._counts[key] = current + 1
            self._evict_locked()
            return True, current + 1

    def get_record(self, identity: str, day: date) -> UsageRecord:
        with self._lock:
            count = self._counts.get((identity, day), 0)
        return UsageRecord(identity=identity, usage_date=day, count=count)

    def sum_between(self, identity: str, start: date, end: date) -> int:
        with self._lock:
            return sum(c for (ident, day), c in self._counts.items() if ident == identity and start <= day <= end)

    def total(self, identity: str) -> int:
        with self._lock:
            return sum(c for (ident, _), c in self._counts.items() if ident == identity)

    def prune(self, before: date) -> int:
        with self._lock:
            stale = [key for key in self._counts if key[1] < before]
            for key in stale:
                del self._counts[key]
            return len(stale)

    def _evict_locked(self) -> None:
        overflow = len(self._counts) - self.max_entries
        if overflow <= 0:
            return
        for key in sorted(self._counts, key=lambda k: k[1])[:overflow]:
            del self._counts[key]


class SqlUsageStore(UsageStore):
    """Relational store using a conditional UPDATE as the atomic primitive."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "SqlUsageStore":
        return cls(create_session_factory(database_url))

    def increment_if_below(self, identity: str, day: date, limit: int) -> tuple[bool, int]:
        # Two passes: a concurrent first insert for the same key makes ours
        # fail the unique constraint, after which the UPDATE path applies.
        for _ in range(2):
            with self.session_factory() as session:
                try:
                    result = session.execute(
                        update(AutoCreateUsage)
                        .where(
                            AutoCreateUsage.identity == identity,
                            AutoCreateUsage.usage_date == day,
                            AutoCreateUsage.usage_count < limit,
                        )
                        .values(
                            usage_count=AutoCreateUsage.usage_count + 1,
                            updated_at=datetime.utcnow(),
                        )
                    )
                    if result.rowcount == 1:
                        count = self._count(session, identity, day)
                        session.commit()
                        return True, count

                    existing = self._count_or_none(session, identity, day)
                    if existing is not None:
                        session.rollback()
                        return False, existing

                    if limit <= 0:
                        session.rollback()
                        return False, 0

                    session.add(AutoCreateUsage(identity=identity, usage_date=day, usage_count=1))
                    session.commit()
                    return True, 1
                except IntegrityError:
                    session.rollback()
                    logger.debug("usage_insert_race", identity=identity, day=str(day))

        raise UsageStoreUnavailableError("Could not record usage after concurrent insert")

    def get_record(self, identity: str, day: date) -> UsageRecord:
        with self.session_factory() as session:
            count = self._count_or_none(session, identity, day) or 0
        return UsageRecord(identity=identity, usage_date=day, count=count)

    def sum_between(self, identity: str, start: date, end: date) -> int:
        with self.session_factory() as session:
            value = session.execute(
                select(func.coalesce(func.sum(AutoCreateUsage.usage_count), 0)).where(
                    AutoCreateUsage.identity == identity,
                    AutoCreateUsage.usage_date >= start,
                    AutoCreateUsage.usage_date <= end,
                )
            ).scalar_one()
            return int(value)

    def total(self, identity: str) -> int:
        with self.session_factory() as session:
            value = session.execute(
                select(func.coalesce(func.sum(AutoCreateUsage.usage_count), 0)).where(
                    AutoCreateUsage.identity == identity
                )
            ).scalar_one()
            return int(value)

    def prune(self, before: date) -> int:
        with self.session_factory() as session:
            result = session.execute(delete(AutoCreateUsage).where(AutoCreateUsage.usage_date < before))
            session.commit()
            return result.rowcount or 0

    @staticmethod
    def _count_or_none(session, identity: str, day: date) -> int | None:
        return session.execute(
            select(AutoCreateUsage.usage_count).where(
                AutoCreateUsage.identity == identity,
                AutoCreateUsage.usage_date == day,
            )
        ).scalar_one_or_none()

    @classmethod
    def _count(cls, session, identity: str, day: date) -> int:
        return cls._count_or_none(session, identity, day) or 0


class UnavailableUsageStore(UsageStore):
    """Stand-in used when the database could not be initialised.

    Every call raises, so the guard serves non-durable fallback decisions.
    """

    def __init__(self, reason: str):
        self.reason = reason

    def _fail(self):
        raise UsageStoreUnavailableError(self.reason)

    def increment_if_below(self, identity: str, day: date, limit: int) -> tuple[bool, int]:
        self._fail()

    def get_record(self, identity: str, day: date) -> UsageRecord:
        self._fail()

    def sum_between(self, identity: str, start: date, end: date) -> int:
        self._fail()

    def total(self, identity: str) -> int:
        self._fail()

    def prune(self, before: date) -> int:
        self._fail()
