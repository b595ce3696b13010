"""
Plan catalog lookups.

Read-only views over the static plan tables. Unknown plans never raise:
they grant zero points so a misconfigured account simply cannot spend.
"""

import logging
from typing import Dict, List, Optional

from pointledger.constants import (
    CREDIT_PACKS,
    CUSTOM_PLAN_GRANT,
    DEFAULT_PLAN_ID,
    INDIVIDUAL_PLAN_ORDER,
    INDIVIDUAL_PLANS,
    ORGANIZATION_PLAN_ORDER,
    ORGANIZATION_PLANS,
    SCOPE_INDIVIDUAL,
    SCOPE_ORGANIZATION,
)
from .config import get_ledger_config

logger = logging.getLogger(__name__)


def _plans(organization: bool) -> Dict[str, Dict]:
    return ORGANIZATION_PLANS if organization else INDIVIDUAL_PLANS


def _scope(organization: bool) -> str:
    return SCOPE_ORGANIZATION if organization else SCOPE_INDIVIDUAL


def plan_grant(plan_id: Optional[str], organization: bool = False) -> int:
    """
    Monthly point grant for a plan.

    Args:
        plan_id: Plan identifier; None means the default (free) plan
        organization: Look up in the organization plan table

    Returns:
        Points granted per period. Unknown plans, and custom plans without
        a configured grant, return 0.
    """
    plan_id = plan_id or DEFAULT_PLAN_ID
    plan = _plans(organization).get(plan_id)
    if plan is None:
        logger.warning(f"Unknown {_scope(organization)} plan '{plan_id}', granting 0 points")
        return 0

    grant = plan["monthly_points"]
    if grant == CUSTOM_PLAN_GRANT:
        key = f"{_scope(organization)}:{plan_id}"
        custom = get_ledger_config().custom_plan_grants.get(key)
        if custom is None:
            logger.warning(f"No custom grant configured for {key}, granting 0 points")
            return 0
        return custom

    return grant


def available_tiers(plan_id: Optional[str], organization: bool = False) -> List[str]:
    """AI tiers included in a plan. Unknown plans get the free plan's tiers."""
    plans = _plans(organization)
    plan = plans.get(plan_id or DEFAULT_PLAN_ID) or plans[DEFAULT_PLAN_ID]
    return list(plan["tiers"])


def is_tier_available(plan_id: Optional[str], tier: str, organization: bool = False) -> bool:
    return tier in available_tiers(plan_id, organization)


def next_plan(plan_id: Optional[str], organization: bool = False) -> Optional[str]:
    """The next plan up in the upgrade order, or None at the top."""
    order = ORGANIZATION_PLAN_ORDER if organization else INDIVIDUAL_PLAN_ORDER
    plan_id = plan_id or DEFAULT_PLAN_ID
    if plan_id not in order:
        return None
    index = order.index(plan_id)
    return order[index + 1] if index + 1 < len(order) else None


def get_credit_pack(pack_id: str) -> Optional[Dict]:
    pack = CREDIT_PACKS.get(pack_id)
    if pack is None:
        return None
    return {"id": pack_id, **pack}


def list_credit_packs() -> List[Dict]:
    return [{"id": pack_id, **pack} for pack_id, pack in CREDIT_PACKS.items()]


__all__ = [
    "plan_grant",
    "available_tiers",
    "is_tier_available",
    "next_plan",
    "get_credit_pack",
    "list_credit_packs",
]
