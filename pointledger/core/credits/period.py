"""
Billing period arithmetic.

A period is a calendar month in UTC, half-open: [first of month 00:00,
first of next month 00:00). Lazy rollover and the scheduled reset job
both go through `roll_over_balance` / `roll_over_allocation` so the two
paths always produce identical windows.
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple

from pointledger.utils.timer_utils import utcnow


def month_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """Start and end of the calendar month containing `now`."""
    period_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    period_end = (period_start + timedelta(days=32)).replace(day=1)
    return period_start, period_end


def is_period_expired(period_end: Optional[datetime], now: datetime) -> bool:
    return period_end is None or period_end <= now


def roll_over_balance(record, now: datetime) -> bool:
    """
    Roll a balance record into the current period, in place.

    Plan usage restarts at zero. Purchased credit does not expire, so
    purchased usage is folded into the purchased balance before its
    counter is reset; purchased remaining is unchanged by a rollover.

    Returns:
        True if the record was rolled over
    """
    if not is_period_expired(record.period_end, now):
        return False

    record.purchased_balance_centipoints = max(
        0, record.purchased_balance_centipoints - record.purchased_used_centipoints
    )
    record.purchased_used_centipoints = 0
    record.plan_used_centipoints = 0
    record.period_start, record.period_end = month_bounds(now)
    return True


def roll_over_allocation(record, now: datetime) -> bool:
    """
    Roll a member allocation into the current period, in place.

    Allocations are a monthly decision: both the allocated and used
    amounts restart at zero until an administrator assigns a new slice.
    """
    if not is_period_expired(record.period_end, now):
        return False

    record.allocated_centipoints = 0
    record.used_centipoints = 0
    record.period_start, record.period_end = month_bounds(now)
    return True


__all__ = [
    "utcnow",
    "month_bounds",
    "is_period_expired",
    "roll_over_balance",
    "roll_over_allocation",
]
