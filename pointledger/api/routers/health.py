"""Liveness and dependency health."""

import logging
from typing import Dict

from fastapi import APIRouter

from pointledger import __version__
from pointledger.utils.timer_utils import utcnow
from ..schemas.common import ComponentHealth, HealthStatus, HealthStatusEnum

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/health",
    response_model=HealthStatus,
    operation_id="getHealth",
    summary="Check service health",
)
async def health_check():
    """
    Check the health of the ledger service.

    **No authentication required.**

    The service is unhealthy when the ledger store does not answer. A stopped
    usage event queue only degrades it, since debits never wait on it.
    """
    from pointledger.core.credits.config import get_ledger_config
    from pointledger.core.credits.usage_queue import get_usage_event_queue
    from pointledger.db.connection import db

    components: Dict[str, ComponentHealth] = {}

    if await db.test_connection(timeout=5.0):
        components["database"] = ComponentHealth(
            status=HealthStatusEnum.healthy,
            message="Connected",
            pools=db.get_pool_stats()["pools_count"],
        )
    else:
        components["database"] = ComponentHealth(
            status=HealthStatusEnum.unhealthy,
            message="Connection failed",
        )

    queue = get_usage_event_queue()
    queue_expected = get_ledger_config().usage_events_enabled
    components["usage_events"] = ComponentHealth(
        status=(
            HealthStatusEnum.degraded
            if queue_expected and not queue.is_running
            else HealthStatusEnum.healthy
        ),
        running=queue.is_running,
        queued=queue.queue_size,
        delivered=queue.stats.delivered,
        failed=queue.stats.failed,
        dropped=queue.stats.dropped,
    )

    statuses = {component.status for component in components.values()}
    if HealthStatusEnum.unhealthy in statuses:
        overall = HealthStatusEnum.unhealthy
    elif HealthStatusEnum.degraded in statuses:
        overall = HealthStatusEnum.degraded
    else:
        overall = HealthStatusEnum.healthy

    return HealthStatus(
        status=overall,
        version=__version__,
        timestamp=utcnow(),
        components=components,
    )
