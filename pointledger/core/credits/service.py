"""
LedgerService - Facade over the credit ledger components.

One entry point for API routes, scripts and other callers:
- BalanceResolver: balances and tier access
- ConsumptionEngine: debits
- AllocationManager: member allocations and requests
- PurchaseManager: purchased top-ups
- PeriodResetJob: scheduled rollover
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pointledger.core.patterns import ThreadSafeSingleton
from .balance_resolver import remaining_conversations
from .cost_calculator import cost, tier_costs
from .exceptions import TierNotAvailable
from .plan_catalog import available_tiers, is_tier_available, list_credit_packs
from .schemas import (
    AccountRole,
    AllocationRequestView,
    AllocationView,
    BalanceView,
    ConsumeResult,
    OrganizationAllocations,
    PurchaseResult,
    SweepResult,
)

logger = logging.getLogger(__name__)


class LedgerService(ThreadSafeSingleton):
    """
    Facade for the credit ledger.

    Thread-safe singleton; components are created on first use.
    """

    def _initialize(self) -> None:
        self._balance_resolver = None
        self._consumption_engine = None
        self._allocation_manager = None
        self._purchase_manager = None
        self._period_reset_job = None
        logger.info("LedgerService initialized")

    # =========================================================================
    # Component accessors (lazy loading)
    # =========================================================================

    @property
    def _resolver(self):
        if self._balance_resolver is None:
            from .balance_resolver import get_balance_resolver
            self._balance_resolver = get_balance_resolver()
        return self._balance_resolver

    @property
    def _engine(self):
        if self._consumption_engine is None:
            from .consumption_engine import get_consumption_engine
            self._consumption_engine = get_consumption_engine()
        return self._consumption_engine

    @property
    def _allocations(self):
        if self._allocation_manager is None:
            from .allocation_manager import get_allocation_manager
            self._allocation_manager = get_allocation_manager()
        return self._allocation_manager

    @property
    def _purchases(self):
        if self._purchase_manager is None:
            from .purchases import get_purchase_manager
            self._purchase_manager = get_purchase_manager()
        return self._purchase_manager

    @property
    def _period_reset(self):
        if self._period_reset_job is None:
            from .period_reset import get_period_reset_job
            self._period_reset_job = get_period_reset_job()
        return self._period_reset_job

    # =========================================================================
    # Balances and pricing
    # =========================================================================

    async def get_balance(
        self,
        account_id: str,
        role: Union[AccountRole, str],
        organization_id: Optional[str] = None,
    ) -> BalanceView:
        """Current balance, rolling an expired period forward first."""
        return await self._resolver.resolve(account_id, role, organization_id)

    async def get_balance_summary(
        self,
        account_id: str,
        role: Union[AccountRole, str],
        organization_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Balance plus per-tier conversations left and the tiers the plan allows."""
        view = await self.get_balance(account_id, role, organization_id)
        organization = view.role != AccountRole.INDIVIDUAL
        return {
            "balance": view,
            "remaining_conversations": remaining_conversations(view.total_remaining),
            "available_tiers": available_tiers(view.plan_id, organization=organization),
        }

    def cost(self, tier: str, work_units: Optional[int] = None) -> Decimal:
        return cost(tier, work_units)

    def tier_costs(self) -> Dict[str, Decimal]:
        return tier_costs()

    def credit_packs(self) -> List[Dict]:
        return list_credit_packs()

    async def ensure_tier_available(
        self,
        account_id: str,
        tier: str,
        role: Union[AccountRole, str],
        organization_id: Optional[str] = None,
    ) -> BalanceView:
        """
        Check the caller's plan includes `tier`.

        Raises:
            TierNotAvailable: The plan does not include the tier
        """
        view = await self.get_balance(account_id, role, organization_id)
        organization = view.role != AccountRole.INDIVIDUAL
        if not is_tier_available(view.plan_id, tier, organization=organization):
            raise TierNotAvailable(
                tier=tier,
                plan_id=view.plan_id or "free",
                available_tiers=available_tiers(view.plan_id, organization=organization),
            )
        return view

    async def can_start_conversation(
        self,
        account_id: str,
        tier: str,
        role: Union[AccountRole, str],
        organization_id: Optional[str] = None,
    ) -> bool:
        return await self._engine.can_start_conversation(account_id, tier, role, organization_id)

    # =========================================================================
    # Consumption
    # =========================================================================

    async def consume(
        self,
        account_id: str,
        tier: str,
        work_units: Optional[int] = None,
        activity_ref: Optional[str] = None,
        role: Union[AccountRole, str] = AccountRole.INDIVIDUAL,
        organization_id: Optional[str] = None,
    ) -> ConsumeResult:
        """Debit one AI response from the caller's wallet."""
        return await self._engine.consume(
            account_id=account_id,
            tier=tier,
            work_units=work_units,
            activity_ref=activity_ref,
            role=role,
            organization_id=organization_id,
        )

    # =========================================================================
    # Allocations
    # =========================================================================

    async def set_allocation(self, organization_id: str, member_id: str, points: Decimal) -> AllocationView:
        return await self._allocations.set_allocation(organization_id, member_id, points)

    async def get_allocation(self, organization_id: str, member_id: str) -> AllocationView:
        return await self._allocations.get_allocation(organization_id, member_id)

    async def list_allocations(self, organization_id: str) -> OrganizationAllocations:
        return await self._allocations.list_allocations(organization_id)

    async def request_allocation(
        self,
        organization_id: str,
        member_id: str,
        points: Decimal,
        reason: Optional[str] = None,
    ) -> AllocationRequestView:
        return await self._allocations.request_allocation(organization_id, member_id, points, reason)

    async def review_allocation_request(
        self,
        organization_id: str,
        request_id: str,
        approve: bool,
        reviewer_id: str,
        note: Optional[str] = None,
    ) -> AllocationRequestView:
        return await self._allocations.review_allocation_request(
            organization_id, request_id, approve, reviewer_id, note
        )

    async def list_allocation_requests(
        self, organization_id: str, status: Optional[str] = None
    ) -> List[AllocationRequestView]:
        return await self._allocations.list_allocation_requests(organization_id, status)

    # =========================================================================
    # Purchases
    # =========================================================================

    async def credit_purchased(
        self,
        owner_id: str,
        points: Decimal,
        reference: str,
        pack_id: Optional[str] = None,
    ) -> PurchaseResult:
        return await self._purchases.credit_purchased(owner_id, points, reference, pack_id)

    async def purchase_pack(self, owner_id: str, pack_id: str, reference: str) -> PurchaseResult:
        return await self._purchases.purchase_pack(owner_id, pack_id, reference)

    # =========================================================================
    # Accounts and period reset
    # =========================================================================

    async def upsert_account(
        self,
        account_id: str,
        kind: str,
        plan_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Register an account or record a plan change made by the subscription flow."""
        from pointledger.db.repositories import account_repository

        return await account_repository.upsert_account(
            account_id, kind, plan_id, organization_id, display_name
        )

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        return await self._period_reset.sweep(now)


# Singleton accessor
def get_ledger_service() -> LedgerService:
    """Get singleton LedgerService instance."""
    return LedgerService.get_instance()


__all__ = [
    "LedgerService",
    "get_ledger_service",
]
