"""Request and response schemas for credit and allocation endpoints."""

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from pointledger.core.credits.schemas import (
    AllocationRequestView,
    AllocationView,
    BalanceView,
    ConsumeResult,
    OrganizationAllocations,
    Points,
    PurchaseResult,
    SweepResult,
)


# =============================================================================
# Requests
# =============================================================================

class ConsumeRequest(BaseModel):
    """Debit for one AI response."""
    tier: str = Field(..., description="AI tier used", examples=["sonnet"])
    work_units: Optional[int] = Field(
        default=None, ge=0, description="Tokens produced; omit to charge the tier maximum"
    )
    activity_ref: Optional[str] = Field(
        default=None, max_length=128, description="Conversation or message identifier"
    )


class SetAllocationBody(BaseModel):
    points: Decimal = Field(..., ge=0, description="Points allocated for the current period")


class AllocationRequestBody(BaseModel):
    points: Decimal = Field(..., gt=0, description="Additional points requested")
    reason: Optional[str] = Field(default=None, max_length=1000)


class ReviewRequestBody(BaseModel):
    approve: bool
    note: Optional[str] = Field(default=None, max_length=1000)


class PurchaseRequest(BaseModel):
    """Top-up notification from the payment flow. Either pack_id or points."""
    owner_id: str = Field(..., description="Individual or organization credited")
    reference: str = Field(..., max_length=128, description="Payment reference, unique per purchase")
    pack_id: Optional[str] = Field(default=None, examples=["medium"])
    points: Optional[Decimal] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _pack_or_points(self) -> "PurchaseRequest":
        if (self.pack_id is None) == (self.points is None):
            raise ValueError("Provide exactly one of pack_id or points")
        return self


# =============================================================================
# Responses
# =============================================================================

class BalanceResponse(BaseModel):
    success: bool
    balance: Optional[BalanceView] = None
    remaining_conversations: Dict[str, int] = Field(default_factory=dict)
    available_tiers: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class ConsumeResponse(BaseModel):
    success: bool
    result: Optional[ConsumeResult] = None
    error: Optional[str] = None


class CostResponse(BaseModel):
    success: bool
    tier: str
    work_units: Optional[int] = None
    points: Points


class TiersResponse(BaseModel):
    success: bool
    tiers: Dict[str, Points]
    available_tiers: List[str] = Field(default_factory=list)


class CreditPacksResponse(BaseModel):
    success: bool
    packs: List[dict]


class PurchaseResponse(BaseModel):
    success: bool
    purchase: Optional[PurchaseResult] = None
    error: Optional[str] = None


class AllocationResponse(BaseModel):
    success: bool
    allocation: Optional[AllocationView] = None
    error: Optional[str] = None


class AllocationListResponse(BaseModel):
    success: bool
    allocations: Optional[OrganizationAllocations] = None
    error: Optional[str] = None


class AllocationRequestResponse(BaseModel):
    success: bool
    request: Optional[AllocationRequestView] = None
    error: Optional[str] = None


class AllocationRequestListResponse(BaseModel):
    success: bool
    requests: List[AllocationRequestView] = Field(default_factory=list)
    error: Optional[str] = None


class SweepResponse(BaseModel):
    success: bool
    result: SweepResult
