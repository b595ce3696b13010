"""
PeriodResetJob - Scheduled rollover sweep.

Rolls every balance and allocation record whose period has ended into the
current calendar month, using the same rollover functions as the lazy
path. Records are processed in locked batches, one transaction per batch.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Type

from sqlalchemy import select

from pointledger.db.models import CreditAllocationModel, CreditBalanceModel
from pointledger.db.utils import ledger_transaction, with_conflict_retry
from .period import roll_over_allocation, roll_over_balance, utcnow
from .schemas import SweepResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


class PeriodResetJob:
    """Normalizes dormant wallets that no read has rolled over."""

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        self.batch_size = batch_size

    @with_conflict_retry
    async def _sweep_batch(
        self,
        model: Type,
        roll: Callable[..., bool],
        now: datetime,
    ) -> int:
        async with ledger_transaction() as session:
            records = (await session.execute(
                select(model)
                .where(model.period_end <= now)
                .order_by(model.id)
                .limit(self.batch_size)
                .with_for_update()
            )).scalars().all()

            rolled = sum(1 for record in records if roll(record, now))
            await session.flush()
            return rolled

    async def _sweep_model(self, model: Type, roll: Callable[..., bool], now: datetime) -> int:
        total = 0
        while True:
            rolled = await self._sweep_batch(model, roll, now)
            total += rolled
            if rolled < self.batch_size:
                return total

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Roll all expired records forward.

        Idempotent: a second sweep with the same `now` finds nothing to do,
        because the first one moved every period end past `now`.
        """
        now = now or utcnow()

        balances = await self._sweep_model(CreditBalanceModel, roll_over_balance, now)
        allocations = await self._sweep_model(CreditAllocationModel, roll_over_allocation, now)

        result = SweepResult(balances_reset=balances, allocations_reset=allocations)
        if balances or allocations:
            logger.info(
                f"Period reset sweep at {now:%Y-%m-%d %H:%M}: "
                f"{balances} balances, {allocations} allocations rolled over"
            )
        else:
            logger.debug("Period reset sweep found no expired records")
        return result


# Singleton accessor
_period_reset_job: Optional[PeriodResetJob] = None


def get_period_reset_job() -> PeriodResetJob:
    """Get or create PeriodResetJob instance."""
    global _period_reset_job
    if _period_reset_job is None:
        _period_reset_job = PeriodResetJob()
    return _period_reset_job


__all__ = [
    "PeriodResetJob",
    "get_period_reset_job",
]
