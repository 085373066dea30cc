"""Unit tests for usage stores and the daily quota guard."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from autoquiz.errors import UsageStoreUnavailableError
from autoquiz.models import UsageRecord
from autoquiz.usage import InMemoryUsageStore, SqlUsageStore, UnavailableUsageStore, UsageGuard

DAY = date(2026, 3, 14)


class MutableClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class BrokenStore(InMemoryUsageStore):
    """Store whose every operation fails like a dropped database connection."""

    def increment_if_below(self, identity, day, limit):
        raise OperationalError("UPDATE auto_create_usage", {}, Exception("database is locked"))

    def get_record(self, identity, day):
        raise OperationalError("SELECT", {}, Exception("database is locked"))


@pytest.fixture
def sql_store(tmp_path):
    return SqlUsageStore.from_url(f"sqlite:///{tmp_path / 'usage.db'}")


class TestInMemoryStore:
    """Tests for the in-memory store."""

    def test_increments_until_limit(self):
        store = InMemoryUsageStore()
        results = [store.increment_if_below("1.2.3.4", DAY, 3) for _ in range(4)]
        assert results == [(True, 1), (True, 2), (True, 3), (False, 3)]

    def test_identities_and_days_are_independent(self):
        store = InMemoryUsageStore()
        store.increment_if_below("a", DAY, 1)
        assert store.increment_if_below("b", DAY, 1) == (True, 1)
        assert store.increment_if_below("a", DAY + timedelta(days=1), 1) == (True, 1)

    def test_concurrent_increments_never_exceed_limit(self):
        store = InMemoryUsageStore()
        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(lambda _: store.increment_if_below("ip", DAY, 3), range(50)))
        assert sum(1 for allowed, _ in results if allowed) == 3
        assert store.get_count("ip", DAY) == 3

    def test_evicts_oldest_days_beyond_bound(self):
        store = InMemoryUsageStore(max_entries=2)
        store.increment_if_below("ip", DAY - timedelta(days=2), 3)
        store.increment_if_below("ip", DAY - timedelta(days=1), 3)
        store.increment_if_below("ip", DAY, 3)
        assert store.get_count("ip", DAY - timedelta(days=2)) == 0
        assert store.get_count("ip", DAY) == 1

    def test_prune(self):
        store = InMemoryUsageStore()
        store.increment_if_below("ip", DAY - timedelta(days=40), 3)
        store.increment_if_below("ip", DAY, 3)
        assert store.prune(DAY - timedelta(days=30)) == 1
        assert store.total("ip") == 1


class TestSqlStore:
    """Tests for the SQLAlchemy-backed store."""

    def test_increments_until_limit(self, sql_store):
        results = [sql_store.increment_if_below("1.2.3.4", DAY, 3) for _ in range(4)]
        assert results == [(True, 1), (True, 2), (True, 3), (False, 3)]
        assert sql_store.get_count("1.2.3.4", DAY) == 3

    def test_zero_limit_denies_without_record(self, sql_store):
        assert sql_store.increment_if_below("ip", DAY, 0) == (False, 0)
        assert sql_store.total("ip") == 0

    def test_aggregates(self, sql_store):
        for offset, times in [(0, 2), (3, 1), (10, 3), (45, 1)]:
            for _ in range(times):
                sql_store.increment_if_below("ip", DAY - timedelta(days=offset), 5)

        assert sql_store.sum_between("ip", DAY - timedelta(days=6), DAY) == 3
        assert sql_store.sum_between("ip", DAY - timedelta(days=29), DAY) == 6
        assert sql_store.total("ip") == 7

    def test_prune_removes_old_rows(self, sql_store):
        sql_store.increment_if_below("ip", DAY - timedelta(days=31), 3)
        sql_store.increment_if_below("ip", DAY, 3)
        assert sql_store.prune(DAY - timedelta(days=30)) == 1
        assert sql_store.total("ip") == 1

    def test_concurrent_increments_never_exceed_limit(self, sql_store):
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: sql_store.increment_if_below("ip", DAY, 3), range(12)))
        assert sum(1 for allowed, _ in results if allowed) == 3
        assert sql_store.get_count("ip", DAY) == 3

    def test_in_memory_url(self):
        store = SqlUsageStore.from_url("sqlite://")
        assert store.increment_if_below("ip", DAY, 3) == (True, 1)
        assert store.get_count("ip", DAY) == 1

    def test_get_record(self, sql_store):
        sql_store.increment_if_below("ip", DAY, 3)
        sql_store.increment_if_below("ip", DAY, 3)

        record = sql_store.get_record("ip", DAY)
        assert isinstance(record, UsageRecord)
        assert (record.identity, record.usage_date, record.count) == ("ip", DAY, 2)
        assert sql_store.get_record("ip", DAY + timedelta(days=1)).count == 0


class TestUsageGuard:
    """Tests for the quota guard."""

    def test_third_request_allowed_fourth_denied(self, memory_guard):
        decisions = [memory_guard.check_and_increment("10.0.0.1") for _ in range(4)]

        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert decisions[2].remaining == 0
        assert decisions[3].current_usage == 3
        assert all(d.durable for d in decisions)

    def test_reset_at_is_next_utc_midnight(self, memory_guard):
        decision = memory_guard.check_and_increment("10.0.0.1")
        assert decision.reset_at == datetime(2026, 3, 15, tzinfo=timezone.utc)

    def test_status_does_not_consume(self, memory_guard):
        memory_guard.status("10.0.0.1")
        memory_guard.status("10.0.0.1")
        status = memory_guard.status("10.0.0.1")
        assert status.current_usage == 0
        assert status.remaining == 3
        assert status.allowed is True

    def test_counter_resets_on_new_utc_day(self, settings):
        clock = MutableClock(datetime(2026, 3, 14, 23, 59, tzinfo=timezone.utc))
        guard = UsageGuard(InMemoryUsageStore(), settings=settings, clock=clock)
        for _ in range(3):
            guard.check_and_increment("ip")
        assert guard.check_and_increment("ip").allowed is False

        clock.now = datetime(2026, 3, 15, 0, 1, tzinfo=timezone.utc)
        decision = guard.check_and_increment("ip")
        assert decision.allowed is True
        assert decision.current_usage == 1

    def test_non_utc_clock_uses_utc_date(self, settings):
        # 01:00 on the 15th at UTC+3 is still the 14th in UTC
        local = timezone(timedelta(hours=3))
        guard = UsageGuard(InMemoryUsageStore(), settings=settings, clock=lambda: datetime(2026, 3, 15, 1, 0, tzinfo=local))
        assert guard.today() == date(2026, 3, 14)

    def test_explicit_limit(self, memory_guard):
        assert memory_guard.check_and_increment("ip", limit=1).allowed is True
        assert memory_guard.check_and_increment("ip", limit=1).allowed is False

    def test_store_failure_fails_open_non_durable(self, settings, fixed_clock):
        guard = UsageGuard(BrokenStore(), settings=settings, clock=fixed_clock)

        decision = guard.check_and_increment("ip")

        assert decision.allowed is True
        assert decision.durable is False
        assert guard.status("ip").current_usage == 1
        assert guard.status("ip").durable is False

    def test_fallback_still_enforces_limit(self, settings, fixed_clock):
        guard = UsageGuard(UnavailableUsageStore("no database"), settings=settings, clock=fixed_clock)
        decisions = [guard.check_and_increment("ip") for _ in range(4)]
        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert not any(d.durable for d in decisions)

    def test_unavailable_store_raises(self):
        with pytest.raises(UsageStoreUnavailableError):
            UnavailableUsageStore("no database").get_count("ip", DAY)

    def test_stats(self, settings):
        clock = MutableClock(datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc))
        guard = UsageGuard(InMemoryUsageStore(), settings=settings, clock=clock)
        guard.check_and_increment("ip")
        clock.now = datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc)
        guard.check_and_increment("ip")
        guard.check_and_increment("ip")

        stats = guard.stats("ip")

        assert stats.today == 2
        assert stats.this_week == 3
        assert stats.this_month == 3
        assert stats.total == 3
        assert stats.remaining_today == 1

    def test_prune_stale_respects_retention(self, settings, fixed_clock):
        store = InMemoryUsageStore()
        store.increment_if_below("ip", date(2026, 1, 1), 3)
        store.increment_if_below("ip", date(2026, 3, 1), 3)
        guard = UsageGuard(store, settings=settings, clock=fixed_clock)

        assert guard.prune_stale() == 1
        assert store.total("ip") == 1

    def test_sql_backed_guard(self, sql_store, settings, fixed_clock):
        guard = UsageGuard(sql_store, settings=settings, clock=fixed_clock)
        decisions = [guard.check_and_increment("ip") for _ in range(4)]
        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert guard.stats("ip").today == 3
