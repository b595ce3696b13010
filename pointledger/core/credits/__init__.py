"""
Credit ledger core.

Leaf components are re-exported here. Components that touch the database
(resolver, engine, allocation manager, reset job, service) are imported
from their own modules.
"""

from .config import LedgerConfig, get_ledger_config, reset_ledger_config
from .cost_calculator import calculate_points_from_tokens, cost, tier_max_cost
from .exceptions import (
    LedgerError,
    AccountNotFound,
    InsufficientBalance,
    AllocationExceedsOrganizationBudget,
    TierNotAvailable,
    AllocationRequestError,
    TransactionConflict,
    PersistenceUnavailable,
)
from .plan_catalog import plan_grant, available_tiers
from .schemas import AccountRole, BalanceView, ConsumeResult, AllocationView, SweepResult

__all__ = [
    "LedgerConfig",
    "get_ledger_config",
    "reset_ledger_config",
    "calculate_points_from_tokens",
    "cost",
    "tier_max_cost",
    "LedgerError",
    "AccountNotFound",
    "InsufficientBalance",
    "AllocationExceedsOrganizationBudget",
    "TierNotAvailable",
    "AllocationRequestError",
    "TransactionConflict",
    "PersistenceUnavailable",
    "plan_grant",
    "available_tiers",
    "AccountRole",
    "BalanceView",
    "ConsumeResult",
    "AllocationView",
    "SweepResult",
]
