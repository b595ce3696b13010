"""Integration tests for row locking on PostgreSQL.

Run with:
    RUN_INTEGRATION_TESTS=1 DATABASE_URL=postgresql+asyncpg://... pytest tests/integration -v

The target database is dropped and recreated table by table.
"""

import asyncio
import os
from decimal import Decimal

import pytest
import pytest_asyncio

from pointledger.core.credits.allocation_manager import AllocationManager
from pointledger.core.credits.consumption_engine import ConsumptionEngine
from pointledger.core.credits.exceptions import (
    AllocationExceedsOrganizationBudget,
    InsufficientBalance,
)
from pointledger.core.credits.purchases import PurchaseManager
from pointledger.db.repositories import upsert_account

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def postgres_db():
    from pointledger.db.connection import db

    await db.close_all()
    db.configure(os.getenv("DATABASE_URL"))
    await db.drop_tables()
    await db.create_tables()

    yield db

    await db.close_all()


class TestConcurrentDebits:
    """Concurrent consumption under SELECT ... FOR UPDATE."""

    @pytest.mark.asyncio
    async def test_exact_success_count(self, postgres_db):
        await upsert_account("pg-user", "individual", plan_id="free")
        engine = ConsumptionEngine()

        results = await asyncio.gather(
            *(engine.consume("pg-user", "sonnet") for _ in range(50)),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        assert len(successes) == 30
        assert all(isinstance(r, InsufficientBalance) for r in results if isinstance(r, Exception))

    @pytest.mark.asyncio
    async def test_concurrent_first_purchases(self, postgres_db):
        await upsert_account("pg-buyer", "individual", plan_id="free")
        manager = PurchaseManager()

        await asyncio.gather(
            *(manager.credit_purchased("pg-buyer", Decimal("10"), f"ref-{i}") for i in range(10))
        )
        result = await manager.credit_purchased("pg-buyer", Decimal("10"), "ref-0")

        assert result.duplicate is True
        assert result.purchased_remaining == Decimal("100.00")


class TestConcurrentAllocations:
    """Organization budget under concurrent allocation writes."""

    @pytest.mark.asyncio
    async def test_budget_never_exceeded(self, postgres_db):
        await upsert_account("pg-org", "organization", plan_id="starter")
        members = [f"pg-member-{i}" for i in range(6)]
        for member_id in members:
            await upsert_account(member_id, "member", organization_id="pg-org")
        manager = AllocationManager()

        results = await asyncio.gather(
            *(manager.set_allocation("pg-org", member_id, Decimal("1000")) for member_id in members),
            return_exceptions=True,
        )

        rejected = [r for r in results if isinstance(r, AllocationExceedsOrganizationBudget)]
        assert len(rejected) == 1
        listing = await manager.list_allocations("pg-org")
        assert listing.total_allocated == Decimal("5000.00")
