"""API request and response schemas."""

from .common import ComponentHealth, ErrorResponse, HealthStatus, HealthStatusEnum, UpgradeHint
from .errors import (
    ALLOCATION_ERROR_RESPONSES,
    BALANCE_ERROR_RESPONSES,
    BASE_ERROR_RESPONSES,
    CONSUME_ERROR_RESPONSES,
)
from .credits import (
    AllocationListResponse,
    AllocationRequestBody,
    AllocationRequestListResponse,
    AllocationRequestResponse,
    AllocationResponse,
    BalanceResponse,
    ConsumeRequest,
    ConsumeResponse,
    CostResponse,
    CreditPacksResponse,
    PurchaseRequest,
    PurchaseResponse,
    ReviewRequestBody,
    SetAllocationBody,
    SweepResponse,
    TiersResponse,
)

__all__ = [
    "ALLOCATION_ERROR_RESPONSES",
    "BALANCE_ERROR_RESPONSES",
    "BASE_ERROR_RESPONSES",
    "CONSUME_ERROR_RESPONSES",
    "ComponentHealth",
    "ErrorResponse",
    "UpgradeHint",
    "HealthStatus",
    "HealthStatusEnum",
    "AllocationListResponse",
    "AllocationRequestBody",
    "AllocationRequestListResponse",
    "AllocationRequestResponse",
    "AllocationResponse",
    "BalanceResponse",
    "ConsumeRequest",
    "ConsumeResponse",
    "CostResponse",
    "CreditPacksResponse",
    "PurchaseRequest",
    "PurchaseResponse",
    "ReviewRequestBody",
    "SetAllocationBody",
    "SweepResponse",
    "TiersResponse",
]
