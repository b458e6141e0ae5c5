"""Tests for the credit ledger.

Covers the daily reset, deduction refusals, plan changes, idempotent
retries, storage failure mapping and concurrent sessions.
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, PendingRollbackError

from mvo_shared.credits import CreditBalance, CreditLedger, PlanTier, refresh_if_stale
from mvo_shared.db.models import CreditUsage, UserCredit
from mvo_shared.db.timeouts import storage_call
from mvo_shared.errors import (
    CreditContention,
    InsufficientCredits,
    InvalidPlan,
    StorageUnavailable,
)

USER = "user-1"


async def spend_to(ledger, user_id, plan, used):
    """Put a user on ``plan`` with ``used`` credits spent today."""
    await ledger.set_plan(user_id, plan)
    if used:
        await ledger.deduct(user_id, used)


# =============================================================================
# Pure helpers
# =============================================================================


class TestCreditBalance:
    def test_remaining_never_negative(self, clock):
        balance = CreditBalance(USER, PlanTier.FREE, 12, clock())
        assert balance.remaining == 0

    def test_unlimited_plan(self, clock):
        balance = CreditBalance(USER, PlanTier.OPERATOR, 5000, clock())
        assert balance.is_unlimited
        assert balance.remaining is None
        assert balance.can_afford(10_000)

    def test_to_dict(self, clock):
        data = CreditBalance(USER, PlanTier.STARTER, 40, clock()).to_dict()
        assert data["plan"] == "starter"
        assert data["daily_allotment"] == 100
        assert data["remaining"] == 60
        assert data["last_reset_date"] == clock().isoformat()


class TestRefreshIfStale:
    def test_resets_usage_on_a_new_day(self, clock):
        record = CreditBalance(USER, PlanTier.STARTER, 80, clock())
        refreshed = refresh_if_stale(record, clock() + timedelta(days=1))
        assert refreshed.used_today == 0
        assert refreshed.last_reset_date == clock() + timedelta(days=1)
        assert refreshed.plan is PlanTier.STARTER

    def test_same_day_is_untouched(self, clock):
        record = CreditBalance(USER, PlanTier.STARTER, 80, clock())
        assert refresh_if_stale(record, clock()) is record

    def test_idempotent(self, clock):
        record = CreditBalance(USER, PlanTier.FREE, 7, clock() - timedelta(days=3))
        once = refresh_if_stale(record, clock())
        assert refresh_if_stale(once, clock()) == once


# =============================================================================
# Load
# =============================================================================


class TestLoad:
    async def test_unknown_user_defaults_to_free(self, ledger, clock, count_rows):
        balance = await ledger.load("new-user")

        assert balance.plan is PlanTier.FREE
        assert balance.used_today == 0
        assert balance.remaining == 10
        assert balance.last_reset_date == clock()
        assert await count_rows(UserCredit) == 0

    async def test_load_applies_reset_after_midnight(self, ledger, clock):
        await spend_to(ledger, USER, "starter", 70)
        clock.advance()

        balance = await ledger.load(USER)

        assert balance.used_today == 0
        assert balance.remaining == 100
        assert balance.last_reset_date == clock()

    async def test_can_afford(self, ledger):
        await spend_to(ledger, USER, "free", 6)
        assert await ledger.can_afford(USER, 4)
        assert not await ledger.can_afford(USER, 5)


# =============================================================================
# Deduct
# =============================================================================


class TestDeduct:
    async def test_refusal_reports_shortfall_and_keeps_usage(self, ledger):
        await spend_to(ledger, USER, "starter", 95)

        with pytest.raises(InsufficientCredits) as exc_info:
            await ledger.deduct(USER, 10)

        assert exc_info.value.required == 10
        assert exc_info.value.remaining == 5
        assert exc_info.value.shortfall == 5
        assert (await ledger.load(USER)).used_today == 95

    async def test_exact_remaining_is_spendable(self, ledger):
        await spend_to(ledger, USER, "starter", 95)

        balance = await ledger.deduct(USER, 5)

        assert balance.used_today == 100
        assert balance.remaining == 0
        with pytest.raises(InsufficientCredits):
            await ledger.deduct(USER, 1)

    async def test_first_deduction_creates_free_record(self, ledger, count_rows):
        balance = await ledger.deduct(USER, 3, feature="persona_panel")

        assert balance.plan is PlanTier.FREE
        assert balance.used_today == 3
        assert await count_rows(UserCredit) == 1
        assert await count_rows(CreditUsage) == 1

    async def test_stale_record_is_reset_before_charging(self, ledger, clock):
        await spend_to(ledger, USER, "free", 10)
        with pytest.raises(InsufficientCredits):
            await ledger.deduct(USER, 1)

        clock.advance()
        balance = await ledger.deduct(USER, 4)

        assert balance.used_today == 4
        assert balance.last_reset_date == clock()

    async def test_refresh_is_persisted_even_when_refused(self, ledger, clock, session):
        await spend_to(ledger, USER, "free", 8)
        clock.advance()

        with pytest.raises(InsufficientCredits):
            await ledger.deduct(USER, 11)

        row = await session.get(UserCredit, USER, populate_existing=True)
        assert row.used_today == 0
        assert row.last_reset_date == clock()

    async def test_unlimited_plan_never_refuses(self, ledger):
        await ledger.set_plan(USER, "operator")

        for _ in range(3):
            balance = await ledger.deduct(USER, 5000)

        assert balance.used_today == 15000
        assert balance.remaining is None

    @pytest.mark.parametrize("amount", [0, -5, 2.5, True, "10"])
    async def test_rejects_non_positive_amounts(self, ledger, amount):
        with pytest.raises(ValueError):
            await ledger.deduct(USER, amount)

    async def test_usage_row_records_feature(self, ledger, session):
        await ledger.deduct(USER, 10, feature="risk_highlighter")

        usage = (await session.execute(CreditUsage.__table__.select())).one()
        assert usage.amount == 10
        assert usage.feature == "risk_highlighter"

    async def test_reevaluates_when_row_changes_underneath(self, ledger, monkeypatch):
        await spend_to(ledger, USER, "starter", 0)
        original = CreditLedger._conditional_deduct
        calls = []

        async def lose_first_race(self, row, amount, today):
            calls.append(amount)
            if len(calls) == 1:
                return False
            return await original(self, row, amount, today)

        monkeypatch.setattr(CreditLedger, "_conditional_deduct", lose_first_race)

        balance = await ledger.deduct(USER, 10)

        assert len(calls) == 2
        assert balance.used_today == 10

    async def test_repeated_contention_is_not_a_refusal(self, ledger, monkeypatch):
        await spend_to(ledger, USER, "starter", 0)

        async def always_lose(self, row, amount, day):
            return False

        monkeypatch.setattr(CreditLedger, "_conditional_deduct", always_lose)

        with pytest.raises(CreditContention) as exc_info:
            await ledger.deduct(USER, 10)

        assert not isinstance(exc_info.value, InsufficientCredits)
        assert exc_info.value.amount == 10
        assert (await ledger.load(USER)).used_today == 0

    async def test_charges_row_already_reset_by_a_later_clock(self, ledger, session, clock):
        ahead = CreditLedger(session, clock=lambda: clock() + timedelta(days=1))
        await ahead.set_plan(USER, "starter")

        balance = await ledger.deduct(USER, 5)

        assert balance.used_today == 5
        assert balance.remaining == 95
        assert balance.last_reset_date == clock() + timedelta(days=1)
        assert (await ahead.load(USER)).used_today == 5


class TestIdempotentDeduct:
    async def test_repeated_key_charges_once(self, ledger, count_rows):
        first = await ledger.deduct(USER, 4, idempotency_key="req-1")
        second = await ledger.deduct(USER, 4, idempotency_key="req-1")

        assert first.used_today == 4
        assert second.used_today == 4
        assert await count_rows(CreditUsage) == 1

    async def test_distinct_keys_charge_separately(self, ledger):
        await ledger.deduct(USER, 4, idempotency_key="req-1")
        balance = await ledger.deduct(USER, 4, idempotency_key="req-2")
        assert balance.used_today == 8

    async def test_keys_are_scoped_per_user(self, ledger):
        await ledger.deduct(USER, 4, idempotency_key="req-1")
        other = await ledger.deduct("user-2", 4, idempotency_key="req-1")
        assert other.used_today == 4


# =============================================================================
# Set plan
# =============================================================================


class TestSetPlan:
    async def test_upgrade_resets_usage(self, ledger):
        await spend_to(ledger, USER, "free", 3)

        balance = await ledger.set_plan(USER, PlanTier.BUILDER)

        assert balance.plan is PlanTier.BUILDER
        assert balance.used_today == 0
        assert balance.daily_allotment == 250
        assert (await ledger.load(USER)).remaining == 250

    async def test_downgrade_grants_fresh_quota(self, ledger):
        await spend_to(ledger, USER, "builder", 200)

        balance = await ledger.set_plan(USER, "free")

        assert balance.remaining == 10

    async def test_set_plan_for_unknown_user_creates_record(self, ledger, count_rows):
        await ledger.set_plan("fresh", "starter")

        assert await count_rows(UserCredit) == 1
        assert (await ledger.load("fresh")).plan is PlanTier.STARTER

    async def test_accepts_alias(self, ledger):
        balance = await ledger.set_plan(USER, "premium")
        assert balance.plan is PlanTier.BUILDER

    async def test_invalid_plan(self, ledger, count_rows):
        with pytest.raises(InvalidPlan):
            await ledger.set_plan(USER, "platinum")
        assert await count_rows(UserCredit) == 0


# =============================================================================
# Storage failures
# =============================================================================


class TestStorageFailures:
    async def test_storage_call_maps_timeout(self):
        with pytest.raises(StorageUnavailable) as exc_info:
            await storage_call("load", asyncio.sleep(1), timeout=0.01)
        assert exc_info.value.operation == "load"

    async def test_storage_call_maps_driver_errors(self):
        async def broken():
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        with pytest.raises(StorageUnavailable):
            await storage_call("load", broken(), timeout=1)

    async def test_storage_call_passes_other_errors_through(self):
        async def buggy():
            raise KeyError("oops")

        with pytest.raises(KeyError):
            await storage_call("load", buggy(), timeout=1)

    async def test_load_retries_then_raises(self, session, clock, monkeypatch):
        ledger = CreditLedger(session, clock=clock, timeout_seconds=0.01, read_attempts=2)
        attempts = []

        async def slow_execute(*args, **kwargs):
            attempts.append(1)
            await asyncio.sleep(1)

        monkeypatch.setattr(session, "execute", slow_execute)

        with pytest.raises(StorageUnavailable):
            await ledger.load(USER)
        assert len(attempts) == 2

    async def test_storage_call_maps_stale_transaction(self):
        async def stale():
            raise PendingRollbackError("Can't reconnect until invalid transaction is rolled back")

        with pytest.raises(StorageUnavailable):
            await storage_call("load", stale(), timeout=1)

    async def test_storage_call_maps_invalidated_connection(self):
        async def invalidated():
            raise DBAPIError("SELECT 1", {}, Exception("gone"), connection_invalidated=True)

        with pytest.raises(StorageUnavailable):
            await storage_call("load", invalidated(), timeout=1)

    async def test_storage_call_keeps_integrity_errors(self):
        async def duplicate():
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(IntegrityError):
            await storage_call("create", duplicate(), timeout=1)

    async def test_load_recovers_from_dropped_connection(
        self, file_session_factory, clock, monkeypatch
    ):
        async with file_session_factory() as session:
            ledger = CreditLedger(session, clock=clock, timeout_seconds=2.0, read_attempts=3)
            await ledger.set_plan(USER, "builder")
            # Leave a transaction open on the connection that is about to drop
            await session.execute(select(UserCredit.user_id))
            real_execute = session.execute
            dropped = []

            async def drop_connection_once(*args, **kwargs):
                if not dropped:
                    dropped.append(1)
                    connection = await session.connection()
                    await connection.invalidate()
                    raise OperationalError("SELECT", {}, Exception("connection reset"))
                return await real_execute(*args, **kwargs)

            monkeypatch.setattr(session, "execute", drop_connection_once)

            balance = await ledger.load(USER)

        assert dropped == [1]
        assert balance.plan is PlanTier.BUILDER
        assert balance.remaining == 250

    async def test_deduct_is_not_retried(self, session, clock, monkeypatch):
        ledger = CreditLedger(session, clock=clock, timeout_seconds=0.01, read_attempts=3)
        attempts = []

        async def slow_execute(*args, **kwargs):
            attempts.append(1)
            await asyncio.sleep(1)

        monkeypatch.setattr(session, "execute", slow_execute)

        with pytest.raises(StorageUnavailable):
            await ledger.deduct(USER, 1)
        assert len(attempts) == 1


# =============================================================================
# Concurrent sessions
# =============================================================================


class TestConcurrentDeductions:
    async def test_parallel_spends_never_exceed_allotment(self, file_session_factory, clock):
        async with file_session_factory() as session:
            await spend_to(CreditLedger(session, clock=clock), USER, "starter", 95)

        async def spend():
            async with file_session_factory() as session:
                ledger = CreditLedger(session, clock=clock, timeout_seconds=10.0)
                return await ledger.deduct(USER, 5)

        results = await asyncio.gather(*(spend() for _ in range(4)), return_exceptions=True)

        granted = [r for r in results if isinstance(r, CreditBalance)]
        refused = [r for r in results if isinstance(r, InsufficientCredits)]
        assert len(granted) == 1
        assert len(refused) == 3
        assert granted[0].used_today == 100
        async with file_session_factory() as session:
            balance = await CreditLedger(session, clock=clock).load(USER)
        assert balance.used_today == 100
