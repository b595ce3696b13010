"""
Pydantic schemas for the credit ledger.

Point amounts are Decimals with two places in Python and serialize to
JSON numbers.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, PlainSerializer

Points = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class AccountRole(str, Enum):
    """Role of the caller, supplied by the identity layer."""
    INDIVIDUAL = "individual"
    ORGANIZATION_ADMIN = "organization_admin"
    ORGANIZATION_MEMBER = "organization_member"


class BalanceView(BaseModel):
    """
    Point-in-time balance of one wallet.

    `wallet_kind` tags the variant: "pooled" wallets (individuals and
    organization admins) spend plan grant then purchased points;
    "allocation" wallets (organization members) spend only their slice.
    """
    account_id: str
    organization_id: Optional[str] = None
    role: AccountRole
    wallet_kind: Literal["pooled", "allocation"]
    plan_id: Optional[str] = None
    plan_grant: int = 0
    plan_remaining: Points = Decimal("0")
    purchased_remaining: Points = Decimal("0")
    allocated_remaining: Optional[Points] = None
    total_remaining: Points
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None


class ConsumeResult(BaseModel):
    """Outcome of a committed debit."""
    consumed_points: Points
    remaining_after: Points
    low_balance_warning: bool
    tier: str
    pool_breakdown: Dict[str, Points] = Field(default_factory=dict)
    usage_entry_id: Optional[str] = None


class AllocationView(BaseModel):
    """A member's allocation for the current period."""
    organization_id: str
    member_id: str
    allocated_points: Points
    used_points: Points
    remaining_points: Points
    period_start: datetime
    period_end: datetime


class MemberAllocation(BaseModel):
    member_id: str
    display_name: Optional[str] = None
    allocated_points: Points
    used_points: Points
    remaining_points: Points


class OrganizationAllocations(BaseModel):
    """Administrator view of how the organization grant is split."""
    organization_id: str
    plan_id: Optional[str] = None
    organization_grant: int
    total_allocated: Points
    unallocated: Points
    members: List[MemberAllocation]


class AllocationRequestView(BaseModel):
    id: str
    organization_id: str
    member_id: str
    requested_points: Points
    reason: Optional[str] = None
    status: str
    reviewed_by: Optional[str] = None
    review_note: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class PurchaseResult(BaseModel):
    owner_id: str
    reference: str
    points_added: Points
    purchased_remaining: Points
    duplicate: bool = False


class SweepResult(BaseModel):
    """Counts of records rolled forward by one period reset sweep."""
    balances_reset: int = 0
    allocations_reset: int = 0


__all__ = [
    "Points",
    "AccountRole",
    "BalanceView",
    "ConsumeResult",
    "AllocationView",
    "MemberAllocation",
    "OrganizationAllocations",
    "AllocationRequestView",
    "PurchaseResult",
    "SweepResult",
]
