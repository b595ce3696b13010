"""
PurchaseManager - Credits bought outside the subscription grant.

Top-ups land in the purchased pool of an individual's or organization's
balance record. The payment reference is recorded in the same transaction,
so a retried provider webhook never credits twice.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update

from pointledger.db.models import (
    AccountKind,
    AccountModel,
    CreditBalanceModel,
    CreditPurchaseModel,
)
from pointledger.db.utils import ledger_transaction, with_conflict_retry
from .cost_calculator import from_centipoints, to_centipoints
from .exceptions import AccountNotFound
from .period import month_bounds, roll_over_balance, utcnow
from .plan_catalog import get_credit_pack
from .schemas import PurchaseResult

logger = logging.getLogger(__name__)

WALLET_OWNER_KINDS = (AccountKind.INDIVIDUAL, AccountKind.ORGANIZATION)


class PurchaseManager:
    """Records credit pack purchases."""

    @with_conflict_retry
    async def credit_purchased(
        self,
        owner_id: str,
        points: Decimal,
        reference: str,
        pack_id: Optional[str] = None,
    ) -> PurchaseResult:
        """
        Add purchased points to a wallet.

        Args:
            owner_id: Individual or organization owning the wallet
            points: Points bought
            reference: Payment reference, unique per purchase
            pack_id: Credit pack identifier, if bought as a pack

        Raises:
            ValueError: Non-positive points
            AccountNotFound: Owner unknown or not a wallet owner
        """
        if Decimal(points) <= 0:
            raise ValueError("Purchased points must be positive")

        centipoints = to_centipoints(points)
        now = utcnow()

        async with ledger_transaction() as session:
            owner = await session.get(AccountModel, owner_id)
            if owner is None or owner.kind not in WALLET_OWNER_KINDS:
                raise AccountNotFound(owner_id)

            record = (await session.execute(
                select(CreditBalanceModel)
                .where(CreditBalanceModel.owner_id == owner_id)
                .with_for_update()
            )).scalar_one_or_none()

            existing = await session.scalar(
                select(CreditPurchaseModel).where(CreditPurchaseModel.reference == reference)
            )
            if existing is not None:
                logger.info(f"Purchase {reference} already credited, ignoring")
                remaining = 0
                if record is not None:
                    remaining = record.purchased_balance_centipoints - record.purchased_used_centipoints
                return PurchaseResult(
                    owner_id=existing.owner_id,
                    reference=reference,
                    points_added=from_centipoints(existing.points_centipoints),
                    purchased_remaining=from_centipoints(max(0, remaining)),
                    duplicate=True,
                )

            session.add(CreditPurchaseModel(
                reference=reference,
                owner_id=owner_id,
                pack_id=pack_id,
                points_centipoints=centipoints,
            ))

            if record is None:
                period_start, period_end = month_bounds(now)
                record = CreditBalanceModel(
                    owner_id=owner_id,
                    plan_used_centipoints=0,
                    purchased_balance_centipoints=centipoints,
                    purchased_used_centipoints=0,
                    period_start=period_start,
                    period_end=period_end,
                )
                session.add(record)
                await session.flush()
            else:
                roll_over_balance(record, now)
                await session.flush()
                await session.execute(
                    update(CreditBalanceModel)
                    .where(CreditBalanceModel.id == record.id)
                    .values(
                        purchased_balance_centipoints=(
                            CreditBalanceModel.purchased_balance_centipoints + centipoints
                        )
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.refresh(record)

            remaining = record.purchased_balance_centipoints - record.purchased_used_centipoints

        logger.info(f"Credited {points} purchased points to {owner_id} ({reference})")
        return PurchaseResult(
            owner_id=owner_id,
            reference=reference,
            points_added=from_centipoints(centipoints),
            purchased_remaining=from_centipoints(max(0, remaining)),
        )

    async def purchase_pack(self, owner_id: str, pack_id: str, reference: str) -> PurchaseResult:
        """
        Credit a catalog pack.

        Raises:
            ValueError: Unknown pack
        """
        pack = get_credit_pack(pack_id)
        if pack is None:
            raise ValueError(f"Unknown credit pack: {pack_id}")
        return await self.credit_purchased(owner_id, Decimal(pack["points"]), reference, pack_id=pack_id)


# Singleton accessor
_purchase_manager: Optional[PurchaseManager] = None


def get_purchase_manager() -> PurchaseManager:
    """Get or create PurchaseManager instance."""
    global _purchase_manager
    if _purchase_manager is None:
        _purchase_manager = PurchaseManager()
    return _purchase_manager


__all__ = [
    "PurchaseManager",
    "get_purchase_manager",
]
