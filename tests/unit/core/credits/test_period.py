"""Tests for billing period arithmetic and in-place rollover."""

from datetime import datetime
from types import SimpleNamespace

from pointledger.core.credits.period import (
    is_period_expired,
    month_bounds,
    roll_over_allocation,
    roll_over_balance,
)


def _balance(**overrides):
    values = dict(
        plan_used_centipoints=2500,
        purchased_balance_centipoints=1000,
        purchased_used_centipoints=400,
        period_start=datetime(2024, 1, 1),
        period_end=datetime(2024, 2, 1),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestMonthBounds:
    """Tests for calendar month windows."""

    def test_mid_month(self):
        assert month_bounds(datetime(2024, 3, 15, 12, 30)) == (
            datetime(2024, 3, 1), datetime(2024, 4, 1)
        )

    def test_december_rolls_into_next_year(self):
        assert month_bounds(datetime(2024, 12, 31, 23, 59)) == (
            datetime(2024, 12, 1), datetime(2025, 1, 1)
        )

    def test_leap_february(self):
        assert month_bounds(datetime(2024, 2, 29)) == (datetime(2024, 2, 1), datetime(2024, 3, 1))

    def test_first_instant_belongs_to_month(self):
        start, _ = month_bounds(datetime(2024, 5, 1))
        assert start == datetime(2024, 5, 1)


class TestIsPeriodExpired:
    """Periods are half-open: the end instant is already the next period."""

    def test_before_end(self):
        assert not is_period_expired(datetime(2024, 2, 1), datetime(2024, 1, 31, 23, 59))

    def test_at_end(self):
        assert is_period_expired(datetime(2024, 2, 1), datetime(2024, 2, 1))

    def test_missing_end(self):
        assert is_period_expired(None, datetime(2024, 2, 1))


class TestRollOverBalance:
    """Tests for roll_over_balance()."""

    def test_resets_plan_usage_and_keeps_purchased_remaining(self):
        record = _balance()

        assert roll_over_balance(record, datetime(2024, 3, 10)) is True

        assert record.plan_used_centipoints == 0
        assert record.purchased_balance_centipoints == 600
        assert record.purchased_used_centipoints == 0
        assert record.period_start == datetime(2024, 3, 1)
        assert record.period_end == datetime(2024, 4, 1)

    def test_current_period_is_untouched(self):
        record = _balance()

        assert roll_over_balance(record, datetime(2024, 1, 20)) is False
        assert record.plan_used_centipoints == 2500
        assert record.purchased_used_centipoints == 400

    def test_idempotent(self):
        record = _balance()
        now = datetime(2024, 2, 5)

        roll_over_balance(record, now)
        snapshot = dict(vars(record))

        assert roll_over_balance(record, now) is False
        assert vars(record) == snapshot


class TestRollOverAllocation:
    """Tests for roll_over_allocation()."""

    def test_resets_allocated_and_used(self):
        record = SimpleNamespace(
            allocated_centipoints=300000,
            used_centipoints=12000,
            period_start=datetime(2024, 1, 1),
            period_end=datetime(2024, 2, 1),
        )

        assert roll_over_allocation(record, datetime(2024, 2, 1)) is True
        assert record.allocated_centipoints == 0
        assert record.used_centipoints == 0
        assert record.period_end == datetime(2024, 3, 1)
