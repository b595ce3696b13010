"""Tests for account registration."""

import pytest

from pointledger.core.credits.exceptions import AccountNotFound
from pointledger.db.repositories import get_account, upsert_account


class TestUpsertAccount:
    """Tests for upsert_account()."""

    @pytest.mark.asyncio
    async def test_creates_account(self, ledger_db):
        account = await upsert_account("user-1", "individual", plan_id="pro", display_name="Ada")

        assert account["id"] == "user-1"
        assert account["kind"] == "individual"
        assert account["plan_id"] == "pro"
        assert account["display_name"] == "Ada"

    @pytest.mark.asyncio
    async def test_updates_plan(self, ledger_db):
        await upsert_account("user-1", "individual", plan_id="free")
        await upsert_account("user-1", "individual", plan_id="max")

        account = await get_account("user-1")
        assert account["plan_id"] == "max"

    @pytest.mark.asyncio
    async def test_member_requires_organization(self, ledger_db):
        with pytest.raises(ValueError):
            await upsert_account("member-1", "member")

    @pytest.mark.asyncio
    async def test_admin_requires_organization(self, ledger_db):
        with pytest.raises(ValueError):
            await upsert_account("admin-1", "admin")

    @pytest.mark.asyncio
    async def test_member_of_unknown_organization(self, ledger_db):
        with pytest.raises(AccountNotFound):
            await upsert_account("member-1", "member", organization_id="org-missing")

    @pytest.mark.asyncio
    async def test_unknown_kind(self, ledger_db):
        with pytest.raises(ValueError):
            await upsert_account("x", "robot")

    @pytest.mark.asyncio
    async def test_get_missing_account(self, ledger_db):
        assert await get_account("nobody") is None
