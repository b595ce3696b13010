"""Tests for plan catalog lookups."""

import pytest

from pointledger.core.credits.config import reset_ledger_config
from pointledger.core.credits.plan_catalog import (
    available_tiers,
    get_credit_pack,
    is_tier_available,
    list_credit_packs,
    next_plan,
    plan_grant,
)


class TestPlanGrant:
    """Tests for plan_grant()."""

    @pytest.mark.parametrize(
        "plan_id,organization,expected",
        [
            ("free", False, 30),
            ("pro", False, 900),
            ("free", True, 100),
            ("starter", True, 5000),
            ("business", True, 15000),
        ],
    )
    def test_catalog_grants(self, plan_id, organization, expected):
        assert plan_grant(plan_id, organization=organization) == expected

    def test_missing_plan_is_free(self):
        assert plan_grant(None) == 30
        assert plan_grant(None, organization=True) == 100

    def test_unknown_plan_grants_zero(self):
        assert plan_grant("platinum") == 0
        assert plan_grant("business", organization=False) == 0

    def test_custom_plan_without_config_grants_zero(self):
        assert plan_grant("enterprise", organization=True) == 0

    def test_custom_plan_uses_configured_grant(self, monkeypatch):
        monkeypatch.setenv("LEDGER_CUSTOM_PLAN_GRANTS", '{"organization:enterprise": 50000}')
        reset_ledger_config()

        assert plan_grant("enterprise", organization=True) == 50000


class TestTiers:
    """Tests for tier availability per plan."""

    def test_free_plans_only_include_sonnet(self):
        assert available_tiers("free") == ["sonnet"]
        assert not is_tier_available("free", "opus")
        assert not is_tier_available("free", "opus", organization=True)

    def test_paid_plans_include_opus(self):
        assert is_tier_available("starter", "opus")
        assert is_tier_available("enterprise", "opus", organization=True)

    def test_unknown_plan_falls_back_to_free_tiers(self):
        assert available_tiers("platinum") == ["sonnet"]


class TestUpgradesAndPacks:
    """Tests for upgrade hints and credit packs."""

    def test_next_plan(self):
        assert next_plan("free") == "starter"
        assert next_plan("pro") == "max"
        assert next_plan("max") is None
        assert next_plan("business", organization=True) == "enterprise"
        assert next_plan("platinum") is None

    def test_get_credit_pack(self):
        pack = get_credit_pack("medium")
        assert pack["id"] == "medium"
        assert pack["points"] == 500
        assert pack["recommended"] is True

    def test_unknown_pack(self):
        assert get_credit_pack("huge") is None

    def test_list_credit_packs(self):
        assert [pack["id"] for pack in list_credit_packs()] == ["small", "medium", "large"]
