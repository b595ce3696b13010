"""
Outbound usage events.

After a debit commits, a structured record is queued for downstream
analytics. Delivery happens on the queue's own thread and event loop, so
a slow or failing sink can never delay or fail a consumption.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pointledger.core.queues import BackgroundQueue
from pointledger.utils.timer_utils import utcnow
from .config import get_ledger_config

logger = logging.getLogger(__name__)
events_logger = logging.getLogger("pointledger.usage_events")

UsageSink = Callable[["UsageEvent"], Union[None, Awaitable[None]]]


@dataclass
class UsageEvent:
    """A committed debit, as published to analytics."""

    account_id: str
    tier: str
    points: float
    remaining_after: float
    wallet_kind: str
    organization_id: Optional[str] = None
    pool_breakdown: Dict[str, float] = field(default_factory=dict)
    work_units: Optional[int] = None
    activity_ref: Optional[str] = None
    usage_entry_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


def log_sink(event: UsageEvent) -> None:
    """Default sink: one JSON line per event on the usage events logger."""
    events_logger.info(json.dumps(event.to_dict(), sort_keys=True))


class UsageEventQueue(BackgroundQueue[UsageEvent]):
    """Fans committed usage events out to the registered sinks."""

    def _initialize(self) -> None:
        super()._initialize()
        self._sinks: List[UsageSink] = [log_sink]

    def _get_max_size(self) -> int:
        return get_ledger_config().usage_queue_max_size

    def _get_queue_name(self) -> str:
        return "usage-event-queue"

    def register_sink(self, sink: UsageSink) -> None:
        """Add a sink; sync callables and coroutine functions are both accepted."""
        self._sinks.append(sink)

    def clear_sinks(self) -> None:
        self._sinks = []

    async def _process_event(self, event: UsageEvent) -> None:
        for sink in list(self._sinks):
            try:
                outcome = sink(event)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                logger.warning(f"Usage sink {getattr(sink, '__name__', sink)} failed: {e}")


# Singleton accessor
def get_usage_event_queue() -> UsageEventQueue:
    """Get singleton usage event queue instance."""
    return UsageEventQueue.get_instance()


def enqueue_point_usage(
    account_id: str,
    tier: str,
    points: Decimal,
    remaining_after: Decimal,
    wallet_kind: str,
    organization_id: Optional[str] = None,
    pool_breakdown: Optional[Dict[str, Decimal]] = None,
    work_units: Optional[int] = None,
    activity_ref: Optional[str] = None,
    usage_entry_id: Optional[str] = None,
) -> None:
    """Convenience function to enqueue a usage event for a committed debit."""
    event = UsageEvent(
        account_id=account_id,
        tier=tier,
        points=float(points),
        remaining_after=float(remaining_after),
        wallet_kind=wallet_kind,
        organization_id=organization_id,
        pool_breakdown={pool: float(amount) for pool, amount in (pool_breakdown or {}).items()},
        work_units=work_units,
        activity_ref=activity_ref,
        usage_entry_id=usage_entry_id,
    )
    get_usage_event_queue().enqueue(event)


__all__ = [
    "UsageEvent",
    "UsageEventQueue",
    "get_usage_event_queue",
    "enqueue_point_usage",
    "log_sink",
]
