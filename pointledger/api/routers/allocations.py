"""Organization allocation endpoints.

Administrators split the organization's monthly grant across members;
members can see their own slice and ask for more.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from pointledger.core.credits.schemas import AccountRole
from pointledger.core.credits.service import LedgerService
from ..dependencies import IdentityContext, get_ledger, require_org_access, require_org_admin
from ..schemas.credits import (
    AllocationListResponse,
    AllocationRequestBody,
    AllocationRequestListResponse,
    AllocationRequestResponse,
    AllocationResponse,
    ReviewRequestBody,
    SetAllocationBody,
)
from ..schemas.errors import ALLOCATION_ERROR_RESPONSES

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/organizations/{org_id}")


@router.put(
    "/allocations/{member_id}",
    response_model=AllocationResponse,
    operation_id="setAllocation",
    responses=ALLOCATION_ERROR_RESPONSES,
    summary="Set a member's allocation",
)
async def set_allocation(
    body: SetAllocationBody,
    org_id: str = Path(...),
    member_id: str = Path(...),
    identity: IdentityContext = Depends(require_org_admin),
    ledger: LedgerService = Depends(get_ledger),
):
    """
    Set a member's points for the current period.

    Returns 422 with `max_assignable` when the organization grant would be
    exceeded.
    """
    allocation = await ledger.set_allocation(org_id, member_id, body.points)
    logger.info(f"{identity.account_id} set allocation of {member_id} to {body.points}")
    return AllocationResponse(success=True, allocation=allocation)


@router.get(
    "/allocations/{member_id}",
    response_model=AllocationResponse,
    operation_id="getAllocation",
    responses=ALLOCATION_ERROR_RESPONSES,
    summary="Get a member's allocation",
)
async def get_allocation(
    org_id: str = Path(...),
    member_id: str = Path(...),
    identity: IdentityContext = Depends(require_org_access),
    ledger: LedgerService = Depends(get_ledger),
):
    """Admins can read any member; members only themselves."""
    if identity.role != AccountRole.ORGANIZATION_ADMIN and identity.account_id != member_id:
        raise HTTPException(status_code=403, detail="Members can only view their own allocation")

    allocation = await ledger.get_allocation(org_id, member_id)
    return AllocationResponse(success=True, allocation=allocation)


@router.get(
    "/allocations",
    response_model=AllocationListResponse,
    operation_id="listAllocations",
    responses=ALLOCATION_ERROR_RESPONSES,
    summary="List member allocations",
)
async def list_allocations(
    org_id: str = Path(...),
    identity: IdentityContext = Depends(require_org_admin),
    ledger: LedgerService = Depends(get_ledger),
):
    allocations = await ledger.list_allocations(org_id)
    return AllocationListResponse(success=True, allocations=allocations)


@router.post(
    "/allocation-requests",
    response_model=AllocationRequestResponse,
    status_code=201,
    operation_id="requestAllocation",
    responses=ALLOCATION_ERROR_RESPONSES,
    summary="Ask for more points",
)
async def request_allocation(
    body: AllocationRequestBody,
    org_id: str = Path(...),
    identity: IdentityContext = Depends(require_org_access),
    ledger: LedgerService = Depends(get_ledger),
):
    """A member asks the administrators for more points. One pending request at a time."""
    if identity.role != AccountRole.ORGANIZATION_MEMBER:
        raise HTTPException(status_code=403, detail="Only organization members can request points")

    request = await ledger.request_allocation(org_id, identity.account_id, body.points, body.reason)
    return AllocationRequestResponse(success=True, request=request)


@router.get(
    "/allocation-requests",
    response_model=AllocationRequestListResponse,
    operation_id="listAllocationRequests",
    responses=ALLOCATION_ERROR_RESPONSES,
    summary="List allocation requests",
)
async def list_allocation_requests(
    org_id: str = Path(...),
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected)$"),
    identity: IdentityContext = Depends(require_org_access),
    ledger: LedgerService = Depends(get_ledger),
):
    """Admins see every request; members see their own."""
    requests = await ledger.list_allocation_requests(org_id, status)
    if identity.role != AccountRole.ORGANIZATION_ADMIN:
        requests = [request for request in requests if request.member_id == identity.account_id]
    return AllocationRequestListResponse(success=True, requests=requests)


@router.post(
    "/allocation-requests/{request_id}/review",
    response_model=AllocationRequestResponse,
    operation_id="reviewAllocationRequest",
    responses=ALLOCATION_ERROR_RESPONSES,
    summary="Approve or reject an allocation request",
)
async def review_allocation_request(
    body: ReviewRequestBody,
    org_id: str = Path(...),
    request_id: str = Path(...),
    identity: IdentityContext = Depends(require_org_admin),
    ledger: LedgerService = Depends(get_ledger),
):
    request = await ledger.review_allocation_request(
        org_id, request_id, body.approve, identity.account_id, body.note
    )
    return AllocationRequestResponse(success=True, request=request)
