"""Shared test fixtures and configuration."""

import os

import pytest
import pytest_asyncio


# =============================================================================
# Ledger Configuration
# =============================================================================

@pytest.fixture(autouse=True)
def ledger_env(monkeypatch):
    """
    Quiet, fast ledger settings for every test.

    Background work (usage events, periodic sweep) is off unless a test
    turns it on, and conflict retries back off in milliseconds.
    """
    from pointledger.core.credits.config import reset_ledger_config

    monkeypatch.setenv("LEDGER_USAGE_EVENTS_ENABLED", "false")
    monkeypatch.setenv("LEDGER_PERIOD_RESET_ENABLED", "false")
    monkeypatch.setenv("LEDGER_CONFLICT_RETRY_MIN_WAIT", "0.001")
    monkeypatch.setenv("LEDGER_CONFLICT_RETRY_MAX_WAIT", "0.01")
    monkeypatch.delenv("LEDGER_API_KEY", raising=False)
    reset_ledger_config()

    yield

    reset_ledger_config()


# =============================================================================
# Singleton Reset
# =============================================================================

@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset the ledger facade and module-level component singletons."""
    import pointledger.core.credits.allocation_manager as allocation_module
    import pointledger.core.credits.balance_resolver as resolver_module
    import pointledger.core.credits.consumption_engine as engine_module
    import pointledger.core.credits.period_reset as reset_module
    import pointledger.core.credits.purchases as purchases_module
    from pointledger.core.credits.service import LedgerService
    from pointledger.core.credits.usage_queue import UsageEventQueue

    def _reset():
        LedgerService.reset_instance()
        UsageEventQueue.reset_instance()
        resolver_module._resolver = None
        engine_module._engine = None
        allocation_module._allocation_manager = None
        purchases_module._purchase_manager = None
        reset_module._period_reset_job = None

    _reset()
    yield
    _reset()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def ledger_db(tmp_path):
    """
    A fresh SQLite ledger database per test.

    Yields the shared DatabaseManager pointed at a file in tmp_path with
    all tables created.
    """
    from pointledger.db.connection import db

    await db.close_all()
    db.configure(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await db.create_tables()

    yield db

    await db.close_all()


@pytest_asyncio.fixture
async def individual(ledger_db):
    """An individual on the free plan (30 points a month)."""
    from pointledger.db.repositories import upsert_account

    return await upsert_account("user-1", "individual", plan_id="free")


@pytest_asyncio.fixture
async def organization(ledger_db):
    """
    A starter organization (5000 points a month) with one admin and three
    members. Admins spend from the organization pool and hold no allocation.
    """
    from pointledger.db.repositories import upsert_account

    org = await upsert_account("org-1", "organization", plan_id="starter", display_name="Acme")
    for member_id in ("member-a", "member-b", "member-c"):
        await upsert_account(member_id, "member", organization_id="org-1")
    await upsert_account("admin-1", "admin", organization_id="org-1")
    return org


# =============================================================================
# Integration Test Markers
# =============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires real PostgreSQL)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless RUN_INTEGRATION_TESTS is set."""
    if not os.getenv("RUN_INTEGRATION_TESTS"):
        skip_integration = pytest.mark.skip(
            reason="Set RUN_INTEGRATION_TESTS=1 to run integration tests"
        )
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)
