"""Tests for ledger transaction helpers and error translation."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from pointledger.core.credits.config import reset_ledger_config
from pointledger.core.credits.exceptions import PersistenceUnavailable, TransactionConflict
from pointledger.db.utils import (
    create_conflict_retry,
    is_conflict_error,
    ledger_transaction,
    model_to_dict,
    translate_db_error,
    with_conflict_retry,
)


class _DriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def _dbapi_error(cls, message, sqlstate=None):
    return cls("SELECT 1", {}, _DriverError(message, sqlstate))


class TestErrorTranslation:
    """Tests for is_conflict_error() and translate_db_error()."""

    def test_serialization_failure_is_conflict(self):
        assert is_conflict_error(_dbapi_error(DBAPIError, "could not serialize", sqlstate="40001"))

    def test_deadlock_is_conflict(self):
        assert is_conflict_error(_dbapi_error(DBAPIError, "boom", sqlstate="40P01"))

    def test_sqlite_lock_is_conflict(self):
        assert is_conflict_error(_dbapi_error(OperationalError, "database is locked"))

    def test_unique_violation_is_conflict(self):
        assert is_conflict_error(_dbapi_error(IntegrityError, "UNIQUE constraint failed"))

    def test_plain_errors_are_not_conflicts(self):
        assert not is_conflict_error(ValueError("nope"))
        assert not is_conflict_error(_dbapi_error(DBAPIError, "syntax error", sqlstate="42601"))

    def test_conflict_translation(self):
        translated = translate_db_error(_dbapi_error(DBAPIError, "x", sqlstate="55P03"))
        assert isinstance(translated, TransactionConflict)

    def test_connection_loss_is_unavailable(self):
        translated = translate_db_error(_dbapi_error(OperationalError, "connection refused"))
        assert isinstance(translated, PersistenceUnavailable)

    def test_other_errors_pass_through(self):
        error = _dbapi_error(DBAPIError, "syntax error", sqlstate="42601")
        assert translate_db_error(error) is error


class TestLedgerTransaction:
    """Tests for ledger_transaction()."""

    @pytest.mark.asyncio
    async def test_yields_session(self):
        mock_session = MagicMock()

        with patch("pointledger.db.utils.db") as mock_db:
            mock_db.session.return_value.__aenter__.return_value = mock_session

            async with ledger_transaction() as session:
                assert session is mock_session

    @pytest.mark.asyncio
    async def test_shutdown_raises_unavailable(self):
        with patch("pointledger.db.utils.db") as mock_db:
            mock_db.session.return_value.__aenter__.return_value = None

            with pytest.raises(PersistenceUnavailable):
                async with ledger_transaction():
                    pass

    @pytest.mark.asyncio
    async def test_deadline_raises_unavailable(self, monkeypatch):
        monkeypatch.setenv("LEDGER_TRANSACTION_TIMEOUT_SECONDS", "0.05")
        reset_ledger_config()

        with patch("pointledger.db.utils.db") as mock_db:
            mock_db.session.return_value.__aenter__.return_value = MagicMock()

            with pytest.raises(PersistenceUnavailable, match="timed out"):
                async with ledger_transaction():
                    await asyncio.sleep(1)

    @pytest.mark.asyncio
    async def test_driver_conflict_becomes_transaction_conflict(self):
        with patch("pointledger.db.utils.db") as mock_db:
            mock_db.session.return_value.__aenter__.return_value = MagicMock()

            with pytest.raises(TransactionConflict):
                async with ledger_transaction():
                    raise _dbapi_error(OperationalError, "database is locked")

    @pytest.mark.asyncio
    async def test_ledger_errors_propagate_unchanged(self):
        from pointledger.core.credits.exceptions import AccountNotFound

        with patch("pointledger.db.utils.db") as mock_db:
            mock_db.session.return_value.__aenter__.return_value = MagicMock()

            with pytest.raises(AccountNotFound):
                async with ledger_transaction():
                    raise AccountNotFound("user-1")


class TestConflictRetry:
    """Tests for create_conflict_retry() and with_conflict_retry."""

    @pytest.mark.asyncio
    async def test_retries_conflicts_until_success(self):
        operation = AsyncMock(side_effect=[TransactionConflict("busy"), TransactionConflict("busy"), "done"])

        @create_conflict_retry(max_attempts=3, min_wait=0.001, max_wait=0.002)
        async def run():
            return await operation()

        assert await run() == "done"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        operation = AsyncMock(side_effect=TransactionConflict("busy"))

        @create_conflict_retry(max_attempts=2, min_wait=0.001, max_wait=0.002)
        async def run():
            return await operation()

        with pytest.raises(TransactionConflict):
            await run()
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        operation = AsyncMock(side_effect=ValueError("bad"))

        @with_conflict_retry
        async def run():
            return await operation()

        with pytest.raises(ValueError):
            await run()
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_retry_limit_comes_from_config(self, monkeypatch):
        monkeypatch.setenv("LEDGER_MAX_CONFLICT_RETRIES", "4")
        reset_ledger_config()
        operation = AsyncMock(side_effect=TransactionConflict("busy"))

        @with_conflict_retry
        async def run():
            return await operation()

        with pytest.raises(TransactionConflict):
            await run()
        assert operation.await_count == 4


class TestModelToDict:
    """Tests for model_to_dict()."""

    def test_converts_columns(self):
        from datetime import datetime

        from pointledger.db.models import AccountModel

        account = AccountModel(
            id="user-1",
            kind="individual",
            plan_id=None,
            created_at=datetime(2024, 1, 1),
        )

        result = model_to_dict(account)
        assert result["id"] == "user-1"
        assert result["created_at"] == "2024-01-01T00:00:00"
        assert "plan_id" in result

        assert "plan_id" not in model_to_dict(account, exclude_none=True)
