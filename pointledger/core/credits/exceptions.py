"""
Typed errors raised by the credit ledger.

Each error carries a human-readable message plus a details dict, and can
render itself as an HTTP response body via `to_response_dict()`.
"""

from decimal import Decimal
from typing import Optional, Dict, Any


class LedgerError(Exception):
    """Base exception for credit ledger errors."""

    error_code = "ledger_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_response_dict(self) -> Dict[str, Any]:
        """Convert to an error response body."""
        return {
            "error": self.error_code,
            "message": self.message,
            **self.details,
        }


class AccountNotFound(LedgerError):
    """Raised when the caller's identity does not map to a known account."""

    error_code = "account_not_found"

    def __init__(self, account_id: str, organization_id: Optional[str] = None):
        self.account_id = account_id
        self.organization_id = organization_id
        details = {"account_id": account_id}
        if organization_id:
            details["organization_id"] = organization_id
        super().__init__(message=f"Account not found: {account_id}", details=details)


class InsufficientBalance(LedgerError):
    """
    Raised when a wallet cannot cover the cost of a request.

    An expected, user-facing outcome rather than an operational failure.
    Surfaced as HTTP 402 with an upgrade hint when one exists.
    """

    error_code = "insufficient_balance"

    def __init__(
        self,
        required: Decimal,
        available: Decimal,
        tier: str,
        upgrade_plan: Optional[str] = None,
    ):
        self.required = required
        self.available = available
        self.tier = tier
        self.upgrade_plan = upgrade_plan

        super().__init__(
            message=f"Insufficient points for {tier}. Required: {required}, available: {available}",
            details={
                "required": float(required),
                "available": float(available),
                "tier": tier,
            },
        )

    def to_response_dict(self) -> Dict[str, Any]:
        response = super().to_response_dict()
        if self.upgrade_plan:
            response["upgrade"] = {
                "plan": self.upgrade_plan,
                "message": f"Upgrade to {self.upgrade_plan.title()} or buy a credit pack for more points",
            }
        return response


class AllocationExceedsOrganizationBudget(LedgerError):
    """Raised when an allocation would push the organization past its grant."""

    error_code = "allocation_exceeds_budget"

    def __init__(
        self,
        organization_id: str,
        requested: Decimal,
        max_assignable: Decimal,
        organization_grant: int,
    ):
        self.organization_id = organization_id
        self.requested = requested
        self.max_assignable = max_assignable
        self.organization_grant = organization_grant

        super().__init__(
            message=(
                f"Allocation of {requested} exceeds the organization budget. "
                f"At most {max_assignable} points can be assigned"
            ),
            details={
                "organization_id": organization_id,
                "requested": float(requested),
                "max_assignable": float(max_assignable),
                "organization_grant": organization_grant,
            },
        )


class TierNotAvailable(LedgerError):
    """Raised when the account's plan does not include the requested AI tier."""

    error_code = "tier_not_available"

    def __init__(self, tier: str, plan_id: str, available_tiers: list):
        self.tier = tier
        self.plan_id = plan_id
        self.available_tiers = available_tiers
        super().__init__(
            message=f"Tier '{tier}' is not available on plan '{plan_id}'",
            details={"tier": tier, "plan_id": plan_id, "available_tiers": available_tiers},
        )


class AllocationRequestError(LedgerError):
    """Raised for invalid allocation request operations (duplicate pending, re-review)."""

    error_code = "allocation_request_error"


class TransactionConflict(LedgerError):
    """
    Transient contention in the persistence layer.

    Nothing has been committed when this is raised, so the whole operation
    may be re-executed from the start.
    """

    error_code = "transaction_conflict"


class PersistenceUnavailable(LedgerError):
    """The store could not be reached or the transaction timed out."""

    error_code = "persistence_unavailable"


__all__ = [
    "LedgerError",
    "AccountNotFound",
    "InsufficientBalance",
    "AllocationExceedsOrganizationBudget",
    "TierNotAvailable",
    "AllocationRequestError",
    "TransactionConflict",
    "PersistenceUnavailable",
]
