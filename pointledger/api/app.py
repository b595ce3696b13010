"""FastAPI application factory."""

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pointledger import __version__
from pointledger.utils.env_utils import parse_bool_env
from .middleware import add_middleware, register_exception_handlers
from .routers import admin_router, allocations_router, credits_router, health_router

logger = logging.getLogger(__name__)

# =============================================================================
# OpenAPI Configuration
# =============================================================================

OPENAPI_TAGS = [
    {
        "name": "Health",
        "description": "Service health checks",
    },
    {
        "name": "Credits",
        "description": "Balances, pricing, debits and purchased top-ups",
    },
    {
        "name": "Allocations",
        "description": "Organization grant split across members, and member requests for more",
    },
    {
        "name": "Admin",
        "description": "Operational jobs such as the period reset sweep",
    },
]

API_DESCRIPTION = """
Point ledger for metered AI usage.

## Authentication

Identity headers are set by the gateway in front of this service:
- `X-User-ID`: Account identifier (required)
- `X-User-Role`: `individual`, `organization_admin` or `organization_member`
- `X-Organization-ID`: Required for organization roles

Service-to-service routes (`/credits/purchases`, `/admin/*`) require
`X-API-Key` when `LEDGER_API_KEY` is configured.

## Errors
- `402` insufficient balance
- `403` tier not included in plan
- `404` unknown account
- `409` transaction conflict or invalid request transition
- `422` allocation exceeds organization budget
- `503` ledger store unavailable
"""


# Background period reset task reference
_period_reset_task: Optional[asyncio.Task] = None


async def _periodic_period_reset():
    """Roll expired periods forward on a fixed interval."""
    from pointledger.core.credits.config import get_ledger_config
    from pointledger.core.credits.service import get_ledger_service

    interval = get_ledger_config().period_reset_interval_seconds

    while True:
        try:
            await asyncio.sleep(interval)
            result = await get_ledger_service().sweep()
            logger.debug(
                f"Periodic period reset: {result.balances_reset} balances, "
                f"{result.allocations_reset} allocations"
            )
        except asyncio.CancelledError:
            logger.info("Period reset task cancelled")
            break
        except Exception as e:
            logger.error(f"Period reset sweep failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    global _period_reset_task

    from pointledger.core.credits.config import get_ledger_config
    from pointledger.core.credits.usage_queue import get_usage_event_queue
    from pointledger.db.connection import db

    logger.info("Starting point ledger API...")

    await db.get_engine_async()
    if parse_bool_env("DB_CREATE_TABLES", False):
        await db.create_tables()
    if not await db.test_connection():
        logger.warning("Database not reachable at startup; requests will fail until it is")

    config = get_ledger_config()
    if config.usage_events_enabled:
        get_usage_event_queue().start()

    if config.period_reset_enabled:
        _period_reset_task = asyncio.create_task(_periodic_period_reset())
        logger.info(f"Started period reset task (every {config.period_reset_interval_seconds}s)")

    yield

    # Shutdown - order matters: background task, event queue, then database
    logger.info("Shutting down point ledger API...")

    if _period_reset_task:
        _period_reset_task.cancel()
        try:
            await _period_reset_task
        except asyncio.CancelledError:
            pass
        _period_reset_task = None
        logger.info("Period reset task stopped")

    get_usage_event_queue().shutdown()

    try:
        await db.close_all()
    except Exception as e:
        logger.warning(f"Database cleanup error: {e}")

    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    api_prefix = os.getenv("API_PREFIX", "/api/v1")
    debug = parse_bool_env("DEBUG", False)

    app = FastAPI(
        title="Point Ledger",
        description=API_DESCRIPTION,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
        debug=debug,
    )

    try:
        origins = json.loads(os.getenv("CORS_ORIGINS", '["*"]'))
    except json.JSONDecodeError:
        logger.warning("CORS_ORIGINS is not valid JSON, allowing all origins")
        origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_middleware(app)
    register_exception_handlers(app)

    app.include_router(health_router, prefix=api_prefix, tags=["Health"])
    app.include_router(credits_router, prefix=api_prefix, tags=["Credits"])
    app.include_router(allocations_router, prefix=api_prefix, tags=["Allocations"])
    app.include_router(admin_router, prefix=api_prefix, tags=["Admin"])

    return app
