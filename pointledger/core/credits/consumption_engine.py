"""
ConsumptionEngine - Atomic point debits.

Single responsibility: check and debit a wallet in one transaction and
write the matching usage entry.

The wallet row is read under SELECT ... FOR UPDATE, and each pool is
debited with a guarded atomic increment:

    UPDATE ... SET used = used + :n WHERE id = :id AND used + :n <= capacity

A guard miss means the row changed under us, which is reported as a
TransactionConflict and retried from the top.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from pointledger.db.models import CreditBalanceModel, PointUsageEntryModel
from pointledger.db.utils import ledger_transaction, with_conflict_retry
from .balance_resolver import (
    WALLET_POOLED,
    BalanceResolver,
    PoolSpec,
    Wallet,
    get_balance_resolver,
    is_low_balance,
)
from .config import get_ledger_config
from .cost_calculator import cost, from_centipoints, to_centipoints
from .exceptions import InsufficientBalance, TransactionConflict
from .period import month_bounds
from .plan_catalog import next_plan
from .schemas import AccountRole, ConsumeResult

logger = logging.getLogger(__name__)


def split_debit(wallet: Wallet, amount: int) -> List[Tuple[PoolSpec, int]]:
    """
    Apportion a debit across the wallet's pools in priority order.

    Each pool gives what it has left until the amount is covered. The
    caller has already checked that the wallet covers the full amount.
    """
    split = []
    outstanding = amount
    for spec, remaining in wallet.pools():
        if outstanding <= 0:
            break
        take = min(remaining, outstanding)
        if take > 0:
            split.append((spec, take))
            outstanding -= take
    return split


class ConsumptionEngine:
    """Debits wallets for AI usage."""

    def __init__(self, resolver: Optional[BalanceResolver] = None):
        self._resolver = resolver or get_balance_resolver()

    async def _create_balance_record(self, session: AsyncSession, wallet: Wallet) -> CreditBalanceModel:
        period_start, period_end = month_bounds(wallet.now)
        record = CreditBalanceModel(
            owner_id=wallet.owner_id,
            plan_used_centipoints=0,
            purchased_balance_centipoints=0,
            purchased_used_centipoints=0,
            period_start=period_start,
            period_end=period_end,
        )
        session.add(record)
        # A concurrent first debit surfaces here as a unique violation
        await session.flush()
        logger.info(f"Created balance record for {wallet.owner_id}")
        return record

    async def _apply_debit(
        self,
        session: AsyncSession,
        wallet: Wallet,
        split: List[Tuple[PoolSpec, int]],
    ) -> None:
        model = wallet.model
        for spec, amount in split:
            used = getattr(model, spec.used_column)
            if spec.capacity_column is None:
                capacity = wallet.plan_grant * 100
            else:
                capacity = getattr(model, spec.capacity_column)

            result = await session.execute(
                update(model)
                .where(model.id == wallet.record.id, used + amount <= capacity)
                .values({spec.used_column: used + amount})
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise TransactionConflict(
                    message=f"Concurrent update on {spec.name} pool of {wallet.owner_id}",
                    details={"pool": spec.name, "owner_id": wallet.owner_id},
                )

    @with_conflict_retry
    async def consume(
        self,
        account_id: str,
        tier: str,
        work_units: Optional[int] = None,
        activity_ref: Optional[str] = None,
        role: Union[AccountRole, str] = AccountRole.INDIVIDUAL,
        organization_id: Optional[str] = None,
    ) -> ConsumeResult:
        """
        Debit the cost of one AI response.

        Args:
            account_id: Authenticated account id
            tier: AI tier used
            work_units: Tokens produced; None charges the tier maximum
            activity_ref: Related activity (conversation, message) for the audit log
            role: Caller role from the identity layer
            organization_id: Organization for admins and members

        Returns:
            ConsumeResult with the debit, the balance left and a low balance flag

        Raises:
            AccountNotFound: Unknown identity
            InsufficientBalance: Wallet cannot cover the cost; nothing is written
            TransactionConflict: Contention persisted through every retry
            PersistenceUnavailable: Store unreachable or transaction timed out
        """
        price = cost(tier, work_units)
        price_centipoints = to_centipoints(price)

        async with ledger_transaction() as session:
            wallet = await self._resolver.load_wallet(
                session, account_id, role, organization_id, lock=True
            )
            available = wallet.total_remaining
            # A member without an allocation for the period has no wallet to debit
            has_wallet = wallet.record is not None or wallet.kind == WALLET_POOLED

            if available < price_centipoints or not has_wallet:
                logger.warning(
                    f"Insufficient balance for {account_id} on {tier}: "
                    f"required {price}, available {from_centipoints(available)}"
                )
                raise InsufficientBalance(
                    required=price,
                    available=from_centipoints(available),
                    tier=tier,
                    upgrade_plan=next_plan(
                        wallet.plan_id, organization=wallet.role != AccountRole.INDIVIDUAL
                    ),
                )

            if wallet.record is None:
                wallet.record = await self._create_balance_record(session, wallet)

            split = split_debit(wallet, price_centipoints)
            await self._apply_debit(session, wallet, split)

            entry = PointUsageEntryModel(
                account_id=wallet.account_id,
                organization_id=wallet.organization_id,
                activity_ref=activity_ref,
                tier=tier,
                work_units=work_units,
                points_centipoints=price_centipoints,
                pool_breakdown={spec.name: amount for spec, amount in split},
            )
            session.add(entry)
            await session.flush()
            entry_id = entry.id

        remaining_after = from_centipoints(available - price_centipoints)
        breakdown: Dict[str, Decimal] = {spec.name: from_centipoints(amount) for spec, amount in split}

        logger.info(
            f"Debited {price} points from {wallet.kind} wallet of {wallet.owner_id} "
            f"({tier}, {breakdown}); {remaining_after} remaining"
        )

        result = ConsumeResult(
            consumed_points=price,
            remaining_after=remaining_after,
            low_balance_warning=is_low_balance(remaining_after, tier),
            tier=tier,
            pool_breakdown=breakdown,
            usage_entry_id=entry_id,
        )
        self._publish(wallet, result, work_units, activity_ref)
        return result

    def _publish(
        self,
        wallet: Wallet,
        result: ConsumeResult,
        work_units: Optional[int],
        activity_ref: Optional[str],
    ) -> None:
        """Hand the committed debit to the usage event queue without blocking."""
        if not get_ledger_config().usage_events_enabled:
            return
        try:
            from .usage_queue import enqueue_point_usage

            enqueue_point_usage(
                account_id=wallet.account_id,
                organization_id=wallet.organization_id,
                wallet_kind=wallet.kind,
                tier=result.tier,
                points=result.consumed_points,
                remaining_after=result.remaining_after,
                pool_breakdown=result.pool_breakdown,
                work_units=work_units,
                activity_ref=activity_ref,
                usage_entry_id=result.usage_entry_id,
            )
        except Exception as e:
            logger.warning(f"Failed to publish usage event for {wallet.account_id}: {e}")

    async def can_start_conversation(
        self,
        account_id: str,
        tier: str,
        role: Union[AccountRole, str] = AccountRole.INDIVIDUAL,
        organization_id: Optional[str] = None,
    ) -> bool:
        """Pre-check: does the wallet cover one response at the tier's maximum cost."""
        view = await self._resolver.resolve(account_id, role, organization_id)
        return view.total_remaining >= cost(tier)


# Singleton accessor
_engine: Optional[ConsumptionEngine] = None


def get_consumption_engine() -> ConsumptionEngine:
    """Get or create ConsumptionEngine instance."""
    global _engine
    if _engine is None:
        _engine = ConsumptionEngine()
    return _engine


__all__ = [
    "split_debit",
    "ConsumptionEngine",
    "get_consumption_engine",
]
