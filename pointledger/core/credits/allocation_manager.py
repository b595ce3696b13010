"""
AllocationManager - Splits an organization's monthly grant across members.

Single responsibility: administrator-controlled member allocations and the
member request/approval flow around them.

Every write locks the organization's account row first, so concurrent
allocation changes for one organization are serialized and the sum of
member allocations can never exceed the organization grant.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pointledger.db.models import (
    AccountKind,
    AccountModel,
    AllocationRequestModel,
    CreditAllocationModel,
    RequestStatus,
)
from pointledger.db.utils import ledger_transaction, with_conflict_retry
from .cost_calculator import from_centipoints, to_centipoints
from .exceptions import (
    AccountNotFound,
    AllocationExceedsOrganizationBudget,
    AllocationRequestError,
)
from .period import is_period_expired, month_bounds, roll_over_allocation, utcnow
from .plan_catalog import plan_grant
from .schemas import (
    AllocationRequestView,
    AllocationView,
    MemberAllocation,
    OrganizationAllocations,
)

logger = logging.getLogger(__name__)


def _allocation_view(
    organization_id: str,
    member_id: str,
    record: Optional[CreditAllocationModel],
    now: datetime,
) -> AllocationView:
    if record is None or is_period_expired(record.period_end, now):
        period_start, period_end = month_bounds(now)
        allocated = used = 0
    else:
        period_start, period_end = record.period_start, record.period_end
        allocated, used = record.allocated_centipoints, record.used_centipoints

    return AllocationView(
        organization_id=organization_id,
        member_id=member_id,
        allocated_points=from_centipoints(allocated),
        used_points=from_centipoints(used),
        remaining_points=from_centipoints(max(0, allocated - used)),
        period_start=period_start,
        period_end=period_end,
    )


def _request_view(request: AllocationRequestModel) -> AllocationRequestView:
    return AllocationRequestView(
        id=request.id,
        organization_id=request.organization_id,
        member_id=request.member_id,
        requested_points=from_centipoints(request.requested_centipoints),
        reason=request.reason,
        status=request.status,
        reviewed_by=request.reviewed_by,
        review_note=request.review_note,
        reviewed_at=request.reviewed_at,
        created_at=request.created_at,
    )


class AllocationManager:
    """Sets, reads and lists member allocations within an organization."""

    # =========================================================================
    # Lookups
    # =========================================================================

    async def _get_organization(
        self, session: AsyncSession, organization_id: str, lock: bool = False
    ) -> AccountModel:
        statement = select(AccountModel).where(
            AccountModel.id == organization_id,
            AccountModel.kind == AccountKind.ORGANIZATION,
        )
        if lock:
            statement = statement.with_for_update()
        organization = (await session.execute(statement)).scalar_one_or_none()
        if organization is None:
            raise AccountNotFound(organization_id, organization_id=organization_id)
        return organization

    async def _get_member(
        self, session: AsyncSession, organization_id: str, member_id: str, lock: bool = False
    ) -> AccountModel:
        statement = select(AccountModel).where(
            AccountModel.id == member_id,
            AccountModel.organization_id == organization_id,
            AccountModel.kind == AccountKind.MEMBER,
        )
        if lock:
            statement = statement.with_for_update()
        member = (await session.execute(statement)).scalar_one_or_none()
        if member is None:
            raise AccountNotFound(member_id, organization_id=organization_id)
        return member

    async def _get_record(
        self, session: AsyncSession, organization_id: str, member_id: str, lock: bool = False
    ) -> Optional[CreditAllocationModel]:
        statement = select(CreditAllocationModel).where(
            CreditAllocationModel.organization_id == organization_id,
            CreditAllocationModel.member_id == member_id,
        )
        if lock:
            statement = statement.with_for_update()
        return (await session.execute(statement)).scalar_one_or_none()

    async def _allocated_to_others(
        self, session: AsyncSession, organization_id: str, member_id: str, now: datetime
    ) -> int:
        """Current-period allocations of every member except `member_id`."""
        total = await session.scalar(
            select(func.coalesce(func.sum(CreditAllocationModel.allocated_centipoints), 0)).where(
                CreditAllocationModel.organization_id == organization_id,
                CreditAllocationModel.member_id != member_id,
                CreditAllocationModel.period_end > now,
            )
        )
        return int(total or 0)

    # =========================================================================
    # Allocation writes
    # =========================================================================

    async def _assign(
        self,
        session: AsyncSession,
        organization: AccountModel,
        member_id: str,
        centipoints: int,
        now: datetime,
    ) -> CreditAllocationModel:
        """
        Upsert a member's allocation for the current period.

        The caller holds the organization row lock.
        """
        grant = plan_grant(organization.plan_id, organization=True) * 100
        others = await self._allocated_to_others(session, organization.id, member_id, now)

        if others + centipoints > grant:
            max_assignable = max(0, grant - others)
            logger.warning(
                f"Rejected allocation of {from_centipoints(centipoints)} to {member_id} in "
                f"{organization.id}: only {from_centipoints(max_assignable)} assignable"
            )
            raise AllocationExceedsOrganizationBudget(
                organization_id=organization.id,
                requested=from_centipoints(centipoints),
                max_assignable=from_centipoints(max_assignable),
                organization_grant=grant // 100,
            )

        record = await self._get_record(session, organization.id, member_id, lock=True)
        if record is None:
            period_start, period_end = month_bounds(now)
            record = CreditAllocationModel(
                organization_id=organization.id,
                member_id=member_id,
                allocated_centipoints=centipoints,
                used_centipoints=0,
                period_start=period_start,
                period_end=period_end,
            )
            session.add(record)
        else:
            roll_over_allocation(record, now)
            record.allocated_centipoints = centipoints

        await session.flush()
        logger.info(
            f"Allocated {from_centipoints(centipoints)} points to {member_id} in {organization.id} "
            f"for {record.period_start:%Y-%m}"
        )
        return record

    @with_conflict_retry
    async def set_allocation(
        self,
        organization_id: str,
        member_id: str,
        points: Decimal,
    ) -> AllocationView:
        """
        Set a member's allocation for the current period.

        Overwrites an existing allocation size; used points are untouched.

        Raises:
            ValueError: Negative points
            AccountNotFound: Unknown organization, or member outside it
            AllocationExceedsOrganizationBudget: Allocations would exceed
                the organization grant; carries the assignable remainder
        """
        if Decimal(points) < 0:
            raise ValueError("Allocation points must be non-negative")

        now = utcnow()
        async with ledger_transaction() as session:
            organization = await self._get_organization(session, organization_id, lock=True)
            await self._get_member(session, organization_id, member_id)
            record = await self._assign(session, organization, member_id, to_centipoints(points), now)
            return _allocation_view(organization_id, member_id, record, now)

    @with_conflict_retry
    async def get_allocation(self, organization_id: str, member_id: str) -> AllocationView:
        """
        A member's allocation for the current period.

        An expired record is rolled forward; a member with no record has 0.
        """
        now = utcnow()
        async with ledger_transaction() as session:
            await self._get_organization(session, organization_id)
            await self._get_member(session, organization_id, member_id)
            record = await self._get_record(session, organization_id, member_id)

            if record is not None and is_period_expired(record.period_end, now):
                await session.refresh(record, with_for_update=True)
                if roll_over_allocation(record, now):
                    await session.flush()

            return _allocation_view(organization_id, member_id, record, now)

    async def list_allocations(self, organization_id: str) -> OrganizationAllocations:
        """Every member of the organization with their current-period allocation."""
        now = utcnow()
        async with ledger_transaction() as session:
            organization = await self._get_organization(session, organization_id)

            members = (await session.execute(
                select(AccountModel)
                .where(
                    AccountModel.organization_id == organization_id,
                    AccountModel.kind == AccountKind.MEMBER,
                )
                .order_by(AccountModel.id)
            )).scalars().all()

            records = (await session.execute(
                select(CreditAllocationModel).where(
                    CreditAllocationModel.organization_id == organization_id
                )
            )).scalars().all()

        by_member = {record.member_id: record for record in records}
        grant = plan_grant(organization.plan_id, organization=True)

        rows: List[MemberAllocation] = []
        total_allocated = Decimal("0")
        for member in members:
            view = _allocation_view(organization_id, member.id, by_member.get(member.id), now)
            total_allocated += view.allocated_points
            rows.append(MemberAllocation(
                member_id=member.id,
                display_name=member.display_name,
                allocated_points=view.allocated_points,
                used_points=view.used_points,
                remaining_points=view.remaining_points,
            ))

        return OrganizationAllocations(
            organization_id=organization_id,
            plan_id=organization.plan_id,
            organization_grant=grant,
            total_allocated=total_allocated,
            unallocated=max(Decimal("0"), Decimal(grant) - total_allocated),
            members=rows,
        )

    # =========================================================================
    # Allocation requests
    # =========================================================================

    @with_conflict_retry
    async def request_allocation(
        self,
        organization_id: str,
        member_id: str,
        points: Decimal,
        reason: Optional[str] = None,
    ) -> AllocationRequestView:
        """
        File a member's request for more points.

        Raises:
            ValueError: Non-positive points
            AccountNotFound: Unknown organization or member
            AllocationRequestError: The member already has a pending request
        """
        if Decimal(points) <= 0:
            raise ValueError("Requested points must be positive")

        async with ledger_transaction() as session:
            await self._get_organization(session, organization_id)
            # Member row lock keeps "one pending request" true under concurrency
            await self._get_member(session, organization_id, member_id, lock=True)

            pending = await session.scalar(
                select(func.count()).select_from(AllocationRequestModel).where(
                    AllocationRequestModel.organization_id == organization_id,
                    AllocationRequestModel.member_id == member_id,
                    AllocationRequestModel.status == RequestStatus.PENDING,
                )
            )
            if pending:
                raise AllocationRequestError(
                    message="A pending allocation request already exists",
                    details={"organization_id": organization_id, "member_id": member_id},
                )

            request = AllocationRequestModel(
                organization_id=organization_id,
                member_id=member_id,
                requested_centipoints=to_centipoints(points),
                reason=reason,
                status=RequestStatus.PENDING,
                created_at=utcnow(),
            )
            session.add(request)
            await session.flush()

            logger.info(f"Allocation request {request.id}: {member_id} asks {points} in {organization_id}")
            return _request_view(request)

    @with_conflict_retry
    async def review_allocation_request(
        self,
        organization_id: str,
        request_id: str,
        approve: bool,
        reviewer_id: str,
        note: Optional[str] = None,
    ) -> AllocationRequestView:
        """
        Approve or reject a pending request.

        Approval adds the requested points on top of the member's current
        allocation, under the same organization budget check as
        set_allocation.

        Raises:
            AllocationRequestError: Unknown request, or already reviewed
            AllocationExceedsOrganizationBudget: Approval would exceed the grant
        """
        now = utcnow()
        async with ledger_transaction() as session:
            organization = await self._get_organization(session, organization_id, lock=True)

            request = (await session.execute(
                select(AllocationRequestModel)
                .where(
                    AllocationRequestModel.id == request_id,
                    AllocationRequestModel.organization_id == organization_id,
                )
                .with_for_update()
            )).scalar_one_or_none()

            if request is None:
                raise AllocationRequestError(
                    message=f"Allocation request not found: {request_id}",
                    details={"request_id": request_id},
                )
            if request.status != RequestStatus.PENDING:
                raise AllocationRequestError(
                    message=f"Allocation request {request_id} is already {request.status}",
                    details={"request_id": request_id, "status": request.status},
                )

            if approve:
                record = await self._get_record(session, organization_id, request.member_id, lock=True)
                current = 0
                if record is not None and not is_period_expired(record.period_end, now):
                    current = record.allocated_centipoints
                await self._assign(
                    session, organization, request.member_id,
                    current + request.requested_centipoints, now,
                )

            request.status = RequestStatus.APPROVED if approve else RequestStatus.REJECTED
            request.reviewed_by = reviewer_id
            request.review_note = note
            request.reviewed_at = now
            await session.flush()

            logger.info(f"Allocation request {request_id} {request.status} by {reviewer_id}")
            return _request_view(request)

    async def list_allocation_requests(
        self,
        organization_id: str,
        status: Optional[str] = None,
    ) -> List[AllocationRequestView]:
        """Requests for an organization, newest first."""
        async with ledger_transaction() as session:
            await self._get_organization(session, organization_id)

            statement = select(AllocationRequestModel).where(
                AllocationRequestModel.organization_id == organization_id
            )
            if status:
                statement = statement.where(AllocationRequestModel.status == status)
            statement = statement.order_by(AllocationRequestModel.created_at.desc())

            requests = (await session.execute(statement)).scalars().all()
            return [_request_view(request) for request in requests]


# Singleton accessor
_allocation_manager: Optional[AllocationManager] = None


def get_allocation_manager() -> AllocationManager:
    """Get or create AllocationManager instance."""
    global _allocation_manager
    if _allocation_manager is None:
        _allocation_manager = AllocationManager()
    return _allocation_manager


__all__ = [
    "AllocationManager",
    "get_allocation_manager",
]
