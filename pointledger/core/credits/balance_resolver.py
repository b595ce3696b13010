"""
BalanceResolver - Computes a wallet's remaining points.

Single responsibility: map an identity onto its wallet, roll stale periods
forward, and report remaining points per pool.

Wallet kinds:
- pooled: individuals and organization admins; plan grant, then purchased
- allocation: organization members; their allocated slice only
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pointledger.constants import TIER_MAX_COST
from pointledger.db.models import (
    AccountKind,
    AccountModel,
    CreditAllocationModel,
    CreditBalanceModel,
)
from pointledger.db.utils import ledger_transaction, with_conflict_retry
from .config import get_ledger_config
from .cost_calculator import from_centipoints, tier_max_cost
from .exceptions import AccountNotFound
from .period import is_period_expired, month_bounds, roll_over_allocation, roll_over_balance, utcnow
from .plan_catalog import plan_grant
from .schemas import AccountRole, BalanceView

logger = logging.getLogger(__name__)

WALLET_POOLED = "pooled"
WALLET_ALLOCATION = "allocation"


@dataclass(frozen=True)
class PoolSpec:
    """A spendable pool: the column counting its usage and what bounds it."""
    name: str
    used_column: str
    # None means the pool is bounded by the plan grant
    capacity_column: Optional[str] = None


POOLS: Dict[str, PoolSpec] = {
    "plan": PoolSpec("plan", "plan_used_centipoints"),
    "purchased": PoolSpec("purchased", "purchased_used_centipoints", "purchased_balance_centipoints"),
    "allocation": PoolSpec("allocation", "used_centipoints", "allocated_centipoints"),
}

# Debit priority per wallet kind
DEBIT_ORDER: Dict[str, Tuple[str, ...]] = {
    WALLET_POOLED: ("plan", "purchased"),
    WALLET_ALLOCATION: ("allocation",),
}


@dataclass
class Wallet:
    """An identity resolved onto its balance or allocation record."""

    kind: str
    account_id: str
    role: AccountRole
    organization_id: Optional[str]
    owner_id: str
    plan_id: Optional[str]
    plan_grant: int
    record: Optional[Union[CreditBalanceModel, CreditAllocationModel]]
    now: datetime

    @property
    def model(self):
        return CreditAllocationModel if self.kind == WALLET_ALLOCATION else CreditBalanceModel

    def capacity(self, spec: PoolSpec) -> int:
        if spec.capacity_column is None:
            return self.plan_grant * 100
        if self.record is None:
            return 0
        return getattr(self.record, spec.capacity_column)

    def used(self, spec: PoolSpec) -> int:
        if self.record is None:
            return 0
        return getattr(self.record, spec.used_column)

    def remaining(self, pool: str) -> int:
        """Remaining centipoints in one pool, never negative."""
        spec = POOLS[pool]
        return max(0, self.capacity(spec) - self.used(spec))

    def pools(self) -> List[Tuple[PoolSpec, int]]:
        """Pools in debit order with their remaining centipoints."""
        return [(POOLS[name], self.remaining(name)) for name in DEBIT_ORDER[self.kind]]

    @property
    def total_remaining(self) -> int:
        return sum(remaining for _, remaining in self.pools())

    def to_view(self) -> BalanceView:
        if self.record is not None:
            period_start, period_end = self.record.period_start, self.record.period_end
        else:
            period_start, period_end = month_bounds(self.now)

        pooled = self.kind == WALLET_POOLED
        return BalanceView(
            account_id=self.account_id,
            organization_id=self.organization_id,
            role=self.role,
            wallet_kind=self.kind,
            plan_id=self.plan_id,
            plan_grant=self.plan_grant,
            plan_remaining=from_centipoints(self.remaining("plan")) if pooled else Decimal("0"),
            purchased_remaining=from_centipoints(self.remaining("purchased")) if pooled else Decimal("0"),
            allocated_remaining=None if pooled else from_centipoints(self.remaining("allocation")),
            total_remaining=from_centipoints(self.total_remaining),
            period_start=period_start,
            period_end=period_end,
        )


def remaining_conversations(total_remaining: Decimal) -> Dict[str, int]:
    """How many max-cost responses the balance still covers, per tier."""
    return {
        tier: math.floor(Decimal(total_remaining) / max_cost)
        for tier, max_cost in TIER_MAX_COST.items()
    }


def is_low_balance(remaining: Decimal, tier: str) -> bool:
    """Fewer max-cost conversations left on `tier` than the warning threshold."""
    threshold = get_ledger_config().low_balance_threshold_conversations
    return math.floor(Decimal(remaining) / tier_max_cost(tier)) < threshold


class BalanceResolver:
    """
    Resolves identities to wallets and wallets to BalanceViews.

    `load_wallet` works inside a caller's transaction so the consumption
    engine can check and debit under one lock; `resolve` opens its own.
    """

    async def _get_account(self, session: AsyncSession, account_id: Optional[str]) -> Optional[AccountModel]:
        if not account_id:
            return None
        return await session.get(AccountModel, account_id)

    async def _get_organization(self, session: AsyncSession, organization_id: Optional[str]) -> AccountModel:
        organization = await self._get_account(session, organization_id)
        if organization is None or organization.kind != AccountKind.ORGANIZATION:
            raise AccountNotFound(organization_id or "", organization_id=organization_id)
        return organization

    async def _get_organization_account(
        self,
        session: AsyncSession,
        account: Optional[AccountModel],
        account_id: str,
        kind: str,
        organization_id: Optional[str],
    ) -> AccountModel:
        """The organization of an admin or member account of the expected kind."""
        organization_id = organization_id or (account.organization_id if account else None)
        if account is None or account.kind != kind or account.organization_id != organization_id:
            raise AccountNotFound(account_id, organization_id=organization_id)
        return await self._get_organization(session, organization_id)

    async def _load_record(self, session: AsyncSession, statement, lock: bool):
        if lock:
            statement = statement.with_for_update()
        return (await session.execute(statement)).scalar_one_or_none()

    async def _roll_over_if_expired(self, session: AsyncSession, wallet: Wallet, locked: bool) -> None:
        record = wallet.record
        if record is None or not is_period_expired(record.period_end, wallet.now):
            return

        if not locked:
            # Writes take the row lock a debit would
            await session.refresh(record, with_for_update=True)

        roll = roll_over_allocation if wallet.kind == WALLET_ALLOCATION else roll_over_balance
        if roll(record, wallet.now):
            await session.flush()
            logger.info(
                f"Rolled {wallet.kind} wallet of {wallet.owner_id} into period "
                f"{record.period_start:%Y-%m}"
            )

    async def load_wallet(
        self,
        session: AsyncSession,
        account_id: str,
        role: Union[AccountRole, str],
        organization_id: Optional[str] = None,
        lock: bool = False,
        now: Optional[datetime] = None,
    ) -> Wallet:
        """
        Resolve an identity to its wallet, rolling an expired period forward.

        Args:
            session: Open transaction
            account_id: Authenticated account id
            role: Caller role from the identity layer
            organization_id: Required for organization members
            lock: Take the wallet row lock (SELECT ... FOR UPDATE)
            now: Clock override

        Raises:
            AccountNotFound: If the identity does not map to a known account
        """
        role = AccountRole(role)
        now = now or utcnow()
        account = await self._get_account(session, account_id)

        if role == AccountRole.INDIVIDUAL:
            if account is None or account.kind != AccountKind.INDIVIDUAL:
                raise AccountNotFound(account_id)
            record = await self._load_record(
                session,
                select(CreditBalanceModel).where(CreditBalanceModel.owner_id == account_id),
                lock,
            )
            wallet = Wallet(
                kind=WALLET_POOLED,
                account_id=account_id,
                role=role,
                organization_id=None,
                owner_id=account_id,
                plan_id=account.plan_id,
                plan_grant=plan_grant(account.plan_id, organization=False),
                record=record,
                now=now,
            )

        elif role == AccountRole.ORGANIZATION_ADMIN:
            organization = await self._get_organization_account(
                session, account, account_id, AccountKind.ADMIN, organization_id
            )
            record = await self._load_record(
                session,
                select(CreditBalanceModel).where(CreditBalanceModel.owner_id == organization.id),
                lock,
            )
            wallet = Wallet(
                kind=WALLET_POOLED,
                account_id=account_id,
                role=role,
                organization_id=organization.id,
                owner_id=organization.id,
                plan_id=organization.plan_id,
                plan_grant=plan_grant(organization.plan_id, organization=True),
                record=record,
                now=now,
            )

        else:
            organization = await self._get_organization_account(
                session, account, account_id, AccountKind.MEMBER, organization_id
            )
            record = await self._load_record(
                session,
                select(CreditAllocationModel).where(
                    CreditAllocationModel.organization_id == organization.id,
                    CreditAllocationModel.member_id == account_id,
                ),
                lock,
            )
            wallet = Wallet(
                kind=WALLET_ALLOCATION,
                account_id=account_id,
                role=role,
                organization_id=organization.id,
                owner_id=account_id,
                plan_id=organization.plan_id,
                plan_grant=plan_grant(organization.plan_id, organization=True),
                record=record,
                now=now,
            )

        await self._roll_over_if_expired(session, wallet, locked=lock)
        return wallet

    @with_conflict_retry
    async def resolve(
        self,
        account_id: str,
        role: Union[AccountRole, str],
        organization_id: Optional[str] = None,
    ) -> BalanceView:
        """
        Current balance for an identity.

        A zero balance is a successful result; only an unknown identity
        raises AccountNotFound.
        """
        async with ledger_transaction() as session:
            wallet = await self.load_wallet(session, account_id, role, organization_id)
            return wallet.to_view()


# Singleton accessor
_resolver: Optional[BalanceResolver] = None


def get_balance_resolver() -> BalanceResolver:
    """Get singleton BalanceResolver instance."""
    global _resolver
    if _resolver is None:
        _resolver = BalanceResolver()
    return _resolver


__all__ = [
    "WALLET_POOLED",
    "WALLET_ALLOCATION",
    "PoolSpec",
    "POOLS",
    "DEBIT_ORDER",
    "Wallet",
    "BalanceResolver",
    "get_balance_resolver",
    "remaining_conversations",
    "is_low_balance",
]
