"""Database layer for the credit ledger."""

from .connection import db, DatabaseConfig, DatabaseManager
from .models import (
    Base,
    AccountKind,
    RequestStatus,
    AccountModel,
    CreditBalanceModel,
    CreditAllocationModel,
    PointUsageEntryModel,
    CreditPurchaseModel,
    AllocationRequestModel,
)

__all__ = [
    "db",
    "DatabaseConfig",
    "DatabaseManager",
    "Base",
    "AccountKind",
    "RequestStatus",
    "AccountModel",
    "CreditBalanceModel",
    "CreditAllocationModel",
    "PointUsageEntryModel",
    "CreditPurchaseModel",
    "AllocationRequestModel",
]
