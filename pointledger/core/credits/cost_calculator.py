"""
Cost calculation for AI usage.

Maps a usage event (tier + tokens) to a point cost. A response is charged
between the configured floor and the tier maximum, scaling linearly with
token volume until the threshold is reached.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from pointledger.constants import TIER_MAX_COST
from .config import get_ledger_config

TWO_PLACES = Decimal("0.01")


def round_points(points: Decimal) -> Decimal:
    """Round to two decimal places, halves away from zero."""
    return Decimal(points).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_centipoints(points: Decimal) -> int:
    """Convert points to integer hundredths for storage."""
    return int(round_points(points) * 100)


def from_centipoints(centipoints: int) -> Decimal:
    """Convert stored hundredths back to points."""
    return (Decimal(centipoints) / 100).quantize(TWO_PLACES)


def tier_max_cost(tier: str) -> Decimal:
    """
    Fixed maximum cost of one response on a tier.

    Raises:
        ValueError: If the tier is not known
    """
    try:
        return TIER_MAX_COST[tier]
    except KeyError:
        raise ValueError(f"Unknown AI tier: {tier}") from None


def calculate_points_from_tokens(tokens_used: int, tier: str) -> Decimal:
    """
    Graduated cost for a response of known size.

    Args:
        tokens_used: Tokens produced by the response
        tier: AI tier identifier

    Returns:
        Points rounded to two decimal places, between the floor and the
        tier maximum.

    Example:
        >>> calculate_points_from_tokens(500, "sonnet")
        Decimal('0.65')
    """
    config = get_ledger_config()
    max_points = tier_max_cost(tier)
    floor = config.min_points

    if tokens_used <= 0:
        return round_points(floor)

    ratio = min(Decimal(tokens_used) / Decimal(config.max_tokens_threshold), Decimal(1))
    return round_points(floor + (max_points - floor) * ratio)


def cost(tier: str, work_units: Optional[int] = None) -> Decimal:
    """Price of a request; the tier maximum when the work volume is unknown."""
    if work_units is None:
        return round_points(tier_max_cost(tier))
    return calculate_points_from_tokens(work_units, tier)


def tier_costs() -> Dict[str, Decimal]:
    return {tier: round_points(points) for tier, points in TIER_MAX_COST.items()}


__all__ = [
    "round_points",
    "to_centipoints",
    "from_centipoints",
    "tier_max_cost",
    "calculate_points_from_tokens",
    "cost",
    "tier_costs",
]
