"""Static catalog values for plans, AI tiers and credit packs.

Plans are namespaced by scope because individual and organization plans
share identifiers ("free", "starter") but grant different amounts.
"""

from decimal import Decimal

# =============================================================================
# AI Tiers
# =============================================================================
TIER_SONNET = "sonnet"
TIER_OPUS = "opus"

# Maximum points charged per response on each tier
TIER_MAX_COST = {
    TIER_SONNET: Decimal("1.0"),
    TIER_OPUS: Decimal("1.6"),
}

# =============================================================================
# Plan Scopes
# =============================================================================
SCOPE_INDIVIDUAL = "individual"
SCOPE_ORGANIZATION = "organization"

DEFAULT_PLAN_ID = "free"

# Grant value meaning "negotiated per contract"
CUSTOM_PLAN_GRANT = -1

# =============================================================================
# Plans (monthly points and available tiers)
# =============================================================================
INDIVIDUAL_PLANS = {
    "free": {"monthly_points": 30, "tiers": [TIER_SONNET]},
    "starter": {"monthly_points": 300, "tiers": [TIER_SONNET, TIER_OPUS]},
    "pro": {"monthly_points": 900, "tiers": [TIER_SONNET, TIER_OPUS]},
    "max": {"monthly_points": 3000, "tiers": [TIER_SONNET, TIER_OPUS]},
}

ORGANIZATION_PLANS = {
    "free": {"monthly_points": 100, "tiers": [TIER_SONNET]},
    "starter": {"monthly_points": 5000, "tiers": [TIER_SONNET, TIER_OPUS]},
    "business": {"monthly_points": 15000, "tiers": [TIER_SONNET, TIER_OPUS]},
    "enterprise": {"monthly_points": CUSTOM_PLAN_GRANT, "tiers": [TIER_SONNET, TIER_OPUS]},
}

# Upgrade order used for upsell hints
INDIVIDUAL_PLAN_ORDER = ["free", "starter", "pro", "max"]
ORGANIZATION_PLAN_ORDER = ["free", "starter", "business", "enterprise"]

# =============================================================================
# Credit Packs (one-off top-ups, price in cents)
# =============================================================================
CREDIT_PACKS = {
    "small": {"points": 100, "price_cents": 300, "recommended": False},
    "medium": {"points": 500, "price_cents": 1200, "recommended": True},
    "large": {"points": 1500, "price_cents": 3000, "recommended": False},
}
