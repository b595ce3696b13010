"""
Ledger configuration.

All settings are configurable via environment variables with the LEDGER_
prefix, e.g. LEDGER_MIN_POINTS=0.5 or
LEDGER_CUSTOM_PLAN_GRANTS='{"organization:enterprise": 50000}'.
"""

from decimal import Decimal
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerConfig(BaseSettings):
    """Tunables for cost calculation, admission and background jobs."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_", case_sensitive=False)

    # Cost calculation
    min_points: Decimal = Field(
        default=Decimal("0.3"),
        gt=0,
        description="Minimum points debited for any response, however short",
    )
    max_tokens_threshold: int = Field(
        default=1000,
        gt=0,
        description="Token count at which a response is charged the tier maximum",
    )

    # Admission
    low_balance_threshold_conversations: int = Field(
        default=5,
        description="Warn when fewer than this many max-cost conversations remain",
    )

    # Plans whose catalog grant is custom (-1), keyed as "<scope>:<plan_id>"
    custom_plan_grants: Dict[str, int] = Field(
        default_factory=dict,
        description="Monthly grants for custom plans, e.g. organization:enterprise",
    )

    # Transactions
    transaction_timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound for one ledger transaction before it is rolled back",
    )
    max_conflict_retries: int = Field(
        default=5,
        description="Attempts for an operation that hits lock contention",
    )
    conflict_retry_min_wait: float = Field(
        default=0.05,
        description="Minimum wait between conflict retries (seconds)",
    )
    conflict_retry_max_wait: float = Field(
        default=1.0,
        description="Maximum wait between conflict retries (seconds)",
    )

    # Period reset job
    period_reset_enabled: bool = Field(
        default=True,
        description="Run the period reset sweep inside the API process",
    )
    period_reset_interval_seconds: int = Field(
        default=3600,
        description="Interval between period reset sweeps",
    )

    # Outbound usage events
    usage_events_enabled: bool = Field(
        default=True,
        description="Publish a usage event after every committed debit",
    )
    usage_queue_max_size: int = Field(
        default=1000,
        description="Pending usage events kept before new ones are dropped",
    )

    # Service-to-service routes
    api_key: Optional[str] = Field(
        default=None,
        description="X-API-Key required on purchase and admin routes; unset disables the check",
    )


# Singleton config instance
_config: Optional[LedgerConfig] = None


def get_ledger_config() -> LedgerConfig:
    """Get the ledger config singleton."""
    global _config
    if _config is None:
        _config = LedgerConfig()
    return _config


def reset_ledger_config() -> None:
    """Reset the config singleton (for testing)."""
    global _config
    _config = None


__all__ = [
    "LedgerConfig",
    "get_ledger_config",
    "reset_ledger_config",
]
