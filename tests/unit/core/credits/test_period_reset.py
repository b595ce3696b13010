"""Tests for the scheduled period reset sweep."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from pointledger.core.credits.allocation_manager import AllocationManager
from pointledger.core.credits.consumption_engine import ConsumptionEngine
from pointledger.core.credits.period_reset import PeriodResetJob
from pointledger.core.credits.purchases import PurchaseManager
from pointledger.db.models import CreditAllocationModel, CreditBalanceModel


async def _age_all_records(db, period_end):
    async with db.session() as session:
        for model in (CreditBalanceModel, CreditAllocationModel):
            await session.execute(
                update(model).values(period_start=datetime(2020, 1, 1), period_end=period_end)
            )


class TestPeriodResetJob:
    """Tests for PeriodResetJob.sweep()."""

    @pytest.mark.asyncio
    async def test_rolls_expired_records(self, individual, organization, ledger_db):
        await PurchaseManager().credit_purchased("user-1", Decimal("10"), "pay-1")
        await ConsumptionEngine().consume("user-1", "sonnet")
        await AllocationManager().set_allocation("org-1", "member-a", Decimal("100"))
        await _age_all_records(ledger_db, datetime(2020, 2, 1))

        result = await PeriodResetJob().sweep(now=datetime(2020, 3, 15))

        assert result.balances_reset == 1
        assert result.allocations_reset == 1

        async with ledger_db.session() as session:
            balance = await session.scalar(select(CreditBalanceModel))
            allocation = await session.scalar(select(CreditAllocationModel))

        assert balance.plan_used_centipoints == 0
        assert balance.purchased_balance_centipoints == 1000
        assert balance.period_start == datetime(2020, 3, 1)
        assert balance.period_end == datetime(2020, 4, 1)
        assert allocation.allocated_centipoints == 0

    @pytest.mark.asyncio
    async def test_second_sweep_is_a_no_op(self, individual, ledger_db):
        await ConsumptionEngine().consume("user-1", "sonnet")
        await _age_all_records(ledger_db, datetime(2020, 2, 1))
        job = PeriodResetJob()
        now = datetime(2020, 2, 10)

        first = await job.sweep(now=now)
        second = await job.sweep(now=now)

        assert first.balances_reset == 1
        assert second.balances_reset == 0
        assert second.allocations_reset == 0

    @pytest.mark.asyncio
    async def test_current_records_are_skipped(self, individual, ledger_db):
        await ConsumptionEngine().consume("user-1", "sonnet")

        result = await PeriodResetJob().sweep()

        assert result.balances_reset == 0
        async with ledger_db.session() as session:
            balance = await session.scalar(select(CreditBalanceModel))
        assert balance.plan_used_centipoints == 100

    @pytest.mark.asyncio
    async def test_processes_in_batches(self, ledger_db):
        from pointledger.db.repositories import upsert_account

        engine = ConsumptionEngine()
        for i in range(5):
            await upsert_account(f"user-{i}", "individual", plan_id="free")
            await engine.consume(f"user-{i}", "sonnet")
        await _age_all_records(ledger_db, datetime(2020, 2, 1))

        result = await PeriodResetJob(batch_size=2).sweep(now=datetime(2020, 2, 2))

        assert result.balances_reset == 5
