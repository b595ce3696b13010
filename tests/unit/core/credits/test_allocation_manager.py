"""Tests for AllocationManager and the allocation request flow."""

import asyncio
from decimal import Decimal

import pytest

from pointledger.core.credits.allocation_manager import AllocationManager
from pointledger.core.credits.consumption_engine import ConsumptionEngine
from pointledger.core.credits.exceptions import (
    AccountNotFound,
    AllocationExceedsOrganizationBudget,
    AllocationRequestError,
)


class TestSetAllocation:
    """Tests for set_allocation() and get_allocation()."""

    @pytest.mark.asyncio
    async def test_set_then_get(self, organization):
        manager = AllocationManager()

        view = await manager.set_allocation("org-1", "member-a", Decimal("1200"))
        assert view.allocated_points == Decimal("1200.00")
        assert view.remaining_points == Decimal("1200.00")

        fetched = await manager.get_allocation("org-1", "member-a")
        assert fetched.allocated_points == Decimal("1200.00")
        assert fetched.used_points == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_exceeding_budget_reports_remainder(self, organization):
        manager = AllocationManager()
        await manager.set_allocation("org-1", "member-a", Decimal("3000"))
        await manager.set_allocation("org-1", "member-b", Decimal("1500"))

        with pytest.raises(AllocationExceedsOrganizationBudget) as exc_info:
            await manager.set_allocation("org-1", "member-c", Decimal("1600"))

        assert exc_info.value.max_assignable == Decimal("500.00")
        assert exc_info.value.organization_grant == 5000

        fetched = await manager.get_allocation("org-1", "member-c")
        assert fetched.allocated_points == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_exact_remainder_is_accepted(self, organization):
        manager = AllocationManager()
        await manager.set_allocation("org-1", "member-a", Decimal("3000"))
        await manager.set_allocation("org-1", "member-b", Decimal("1500"))

        view = await manager.set_allocation("org-1", "member-c", Decimal("500"))

        assert view.allocated_points == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_overwrite_excludes_own_previous_allocation(self, organization):
        manager = AllocationManager()
        await manager.set_allocation("org-1", "member-a", Decimal("4000"))

        view = await manager.set_allocation("org-1", "member-a", Decimal("5000"))

        assert view.allocated_points == Decimal("5000.00")

    @pytest.mark.asyncio
    async def test_resize_keeps_used_points(self, organization):
        manager = AllocationManager()
        await manager.set_allocation("org-1", "member-a", Decimal("10"))
        await ConsumptionEngine().consume(
            "member-a", "sonnet", role="organization_member", organization_id="org-1"
        )

        view = await manager.set_allocation("org-1", "member-a", Decimal("20"))

        assert view.used_points == Decimal("1.00")
        assert view.remaining_points == Decimal("19.00")

    @pytest.mark.asyncio
    async def test_negative_points_rejected(self, organization):
        with pytest.raises(ValueError):
            await AllocationManager().set_allocation("org-1", "member-a", Decimal("-1"))

    @pytest.mark.asyncio
    async def test_unknown_member(self, organization):
        with pytest.raises(AccountNotFound):
            await AllocationManager().set_allocation("org-1", "stranger", Decimal("10"))

    @pytest.mark.asyncio
    async def test_admin_cannot_hold_allocation(self, organization):
        with pytest.raises(AccountNotFound):
            await AllocationManager().set_allocation("org-1", "admin-1", Decimal("10"))

    @pytest.mark.asyncio
    async def test_unknown_organization(self, organization):
        with pytest.raises(AccountNotFound):
            await AllocationManager().get_allocation("org-missing", "member-a")

    @pytest.mark.asyncio
    async def test_enterprise_without_configured_grant_cannot_allocate(self, ledger_db):
        from pointledger.db.repositories import upsert_account

        await upsert_account("org-big", "organization", plan_id="enterprise")
        await upsert_account("member-x", "member", organization_id="org-big")

        with pytest.raises(AllocationExceedsOrganizationBudget) as exc_info:
            await AllocationManager().set_allocation("org-big", "member-x", Decimal("1"))

        assert exc_info.value.max_assignable == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_concurrent_allocations_stay_within_grant(self, organization):
        from pointledger.db.repositories import upsert_account

        await upsert_account("member-d", "member", organization_id="org-1")
        manager = AllocationManager()

        results = await asyncio.gather(
            *(
                manager.set_allocation("org-1", member_id, Decimal("2000"))
                for member_id in ("member-a", "member-b", "member-c", "member-d")
            ),
            return_exceptions=True,
        )

        rejected = [r for r in results if isinstance(r, AllocationExceedsOrganizationBudget)]
        assert len(rejected) == 2

        listing = await manager.list_allocations("org-1")
        assert listing.total_allocated == Decimal("4000.00")


class TestListAllocations:
    """Tests for list_allocations()."""

    @pytest.mark.asyncio
    async def test_lists_every_member(self, organization):
        manager = AllocationManager()
        await manager.set_allocation("org-1", "member-a", Decimal("1000"))

        listing = await manager.list_allocations("org-1")

        assert listing.organization_grant == 5000
        assert listing.total_allocated == Decimal("1000.00")
        assert listing.unallocated == Decimal("4000.00")
        assert [m.member_id for m in listing.members] == ["member-a", "member-b", "member-c"]
        assert listing.members[1].allocated_points == Decimal("0.00")


class TestAllocationRequests:
    """Tests for member requests and administrator review."""

    @pytest.mark.asyncio
    async def test_approval_adds_to_current_allocation(self, organization):
        manager = AllocationManager()
        await manager.set_allocation("org-1", "member-a", Decimal("100"))

        request = await manager.request_allocation("org-1", "member-a", Decimal("50"), "Demo week")
        assert request.status == "pending"

        reviewed = await manager.review_allocation_request("org-1", request.id, True, "admin-1", "ok")
        assert reviewed.status == "approved"
        assert reviewed.reviewed_by == "admin-1"

        view = await manager.get_allocation("org-1", "member-a")
        assert view.allocated_points == Decimal("150.00")

    @pytest.mark.asyncio
    async def test_rejection_leaves_allocation(self, organization):
        manager = AllocationManager()
        request = await manager.request_allocation("org-1", "member-a", Decimal("50"))

        reviewed = await manager.review_allocation_request("org-1", request.id, False, "admin-1")

        assert reviewed.status == "rejected"
        view = await manager.get_allocation("org-1", "member-a")
        assert view.allocated_points == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_one_pending_request_per_member(self, organization):
        manager = AllocationManager()
        await manager.request_allocation("org-1", "member-a", Decimal("50"))

        with pytest.raises(AllocationRequestError):
            await manager.request_allocation("org-1", "member-a", Decimal("10"))

        # Another member is unaffected
        await manager.request_allocation("org-1", "member-b", Decimal("10"))

    @pytest.mark.asyncio
    async def test_request_cannot_be_reviewed_twice(self, organization):
        manager = AllocationManager()
        request = await manager.request_allocation("org-1", "member-a", Decimal("50"))
        await manager.review_allocation_request("org-1", request.id, False, "admin-1")

        with pytest.raises(AllocationRequestError):
            await manager.review_allocation_request("org-1", request.id, True, "admin-1")

    @pytest.mark.asyncio
    async def test_approval_over_budget_keeps_request_pending(self, organization):
        manager = AllocationManager()
        await manager.set_allocation("org-1", "member-b", Decimal("4990"))
        request = await manager.request_allocation("org-1", "member-a", Decimal("50"))

        with pytest.raises(AllocationExceedsOrganizationBudget) as exc_info:
            await manager.review_allocation_request("org-1", request.id, True, "admin-1")

        assert exc_info.value.max_assignable == Decimal("10.00")
        pending = await manager.list_allocation_requests("org-1", status="pending")
        assert [r.id for r in pending] == [request.id]

    @pytest.mark.asyncio
    async def test_unknown_request(self, organization):
        with pytest.raises(AllocationRequestError):
            await AllocationManager().review_allocation_request("org-1", "nope", True, "admin-1")

    @pytest.mark.asyncio
    async def test_non_positive_request_rejected(self, organization):
        with pytest.raises(ValueError):
            await AllocationManager().request_allocation("org-1", "member-a", Decimal("0"))

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, organization):
        manager = AllocationManager()
        first = await manager.request_allocation("org-1", "member-a", Decimal("5"))
        await manager.review_allocation_request("org-1", first.id, True, "admin-1")
        await manager.request_allocation("org-1", "member-b", Decimal("5"))

        assert len(await manager.list_allocation_requests("org-1")) == 2
        approved = await manager.list_allocation_requests("org-1", status="approved")
        assert [r.member_id for r in approved] == ["member-a"]
