"""Unit tests for scan credits

Tests cover:
- Starting balance and tier costs
- Image scan charges (bonus credits spent first, insufficient balance)
- Package purchases, bonuses and refunds with ledger rows
"""

from __future__ import annotations

import pytest

from framelord.credits.models import CREDIT_PACKAGES, STARTING_CREDITS, get_cost_for_tier
from framelord.credits.repository import CreditRepository
from framelord.observability.telemetry import get_counter

TENANT = "tenant_1"


def test_new_tenant_gets_starting_credits():
    balance = CreditRepository.get_balance(TENANT)

    assert balance.credits == STARTING_CREDITS == 10
    assert balance.available == 10
    assert CreditRepository.list_transactions(TENANT) == []


def test_costs():
    assert get_cost_for_tier("basic") == 0
    assert get_cost_for_tier("detailed") == 5
    with pytest.raises(ValueError, match="Unknown scan tier"):
        get_cost_for_tier("premium")


def test_packages():
    assert {pkg.id: pkg.credits for pkg in CREDIT_PACKAGES} == {
        "pkg_starter": 10,
        "pkg_standard": 30,
        "pkg_pro": 100,
        "pkg_unlimited": 999999,
    }
    assert [pkg.id for pkg in CREDIT_PACKAGES if pkg.popular] == ["pkg_standard"]


class TestScanCharges:
    def test_basic_scan_is_free(self):
        assert CreditRepository.use_credits_for_scan(TENANT, "basic")
        assert CreditRepository.list_transactions(TENANT) == []

    def test_detailed_scan_charges_five(self):
        assert CreditRepository.use_credits_for_scan(TENANT, "detailed", scan_report_id="scan_1")

        balance = CreditRepository.get_balance(TENANT)
        assert balance.credits == 5
        assert balance.total_used == 5
        txn = CreditRepository.list_transactions(TENANT)[0]
        assert txn.type == "use"
        assert txn.amount == -5
        assert txn.scan_report_id == "scan_1"
        assert txn.description == "Detailed image scan"

    def test_bonus_credits_are_spent_first(self):
        CreditRepository.add_bonus_credits(TENANT, 3, "Welcome bonus")

        CreditRepository.use_credits_for_scan(TENANT, "detailed")

        balance = CreditRepository.get_balance(TENANT)
        assert balance.bonus_credits == 0
        assert balance.credits == 8

    def test_insufficient_balance(self):
        assert CreditRepository.use_credits_for_scan(TENANT, "detailed")
        assert CreditRepository.use_credits_for_scan(TENANT, "detailed")

        assert not CreditRepository.has_credits_for(TENANT, "detailed")
        assert not CreditRepository.use_credits_for_scan(TENANT, "detailed")
        assert CreditRepository.get_available_credits(TENANT) == 0
        assert get_counter("credits.insufficient") == 1

    def test_charge_returns_ledger_row_for_later_linking(self):
        txn = CreditRepository.charge_scan(TENANT, "detailed")

        assert txn is not None
        assert txn.amount == -5
        assert txn.scan_report_id is None
        assert CreditRepository.attach_scan_report(txn.id, "scan_9")
        assert CreditRepository.list_transactions(TENANT)[0].scan_report_id == "scan_9"
        assert not CreditRepository.attach_scan_report("txn_missing", "scan_9")

    def test_charge_is_none_when_free_or_short(self):
        assert CreditRepository.charge_scan(TENANT, "basic") is None

        CreditRepository.charge_scan(TENANT, "detailed")
        CreditRepository.charge_scan(TENANT, "detailed")
        assert CreditRepository.charge_scan(TENANT, "detailed") is None
        assert CreditRepository.get_available_credits(TENANT) == 0


class TestCreditChanges:
    def test_purchase(self):
        assert CreditRepository.add_purchased_credits(TENANT, "pkg_standard")

        balance = CreditRepository.get_balance(TENANT)
        assert balance.credits == 40
        assert balance.total_purchased == 30
        assert CreditRepository.list_transactions(TENANT)[0].description == "Purchased Standard Pack"

    def test_unknown_package(self):
        assert not CreditRepository.add_purchased_credits(TENANT, "pkg_missing")
        assert CreditRepository.get_balance(TENANT).credits == STARTING_CREDITS

    def test_refund_restores_usage(self):
        CreditRepository.use_credits_for_scan(TENANT, "detailed")

        balance = CreditRepository.refund_credits(TENANT, 5, "Scan failed")

        assert balance.credits == 10
        assert balance.total_used == 0

    @pytest.mark.parametrize("amount", [0, -3])
    def test_non_positive_amounts_rejected(self, amount):
        with pytest.raises(ValueError):
            CreditRepository.add_bonus_credits(TENANT, amount, "x")
        with pytest.raises(ValueError):
            CreditRepository.refund_credits(TENANT, amount, "x")

    def test_ledger_is_newest_first(self):
        CreditRepository.add_bonus_credits(TENANT, 2, "first")
        CreditRepository.add_purchased_credits(TENANT, "pkg_starter")
        CreditRepository.use_credits_for_scan(TENANT, "detailed")

        types = [txn.type for txn in CreditRepository.list_transactions(TENANT)]
        assert types == ["use", "purchase", "bonus"]

    def test_reset(self):
        CreditRepository.add_purchased_credits(TENANT, "pkg_pro")
        CreditRepository.reset(TENANT)

        assert CreditRepository.get_balance(TENANT).credits == STARTING_CREDITS
        assert CreditRepository.list_transactions(TENANT) == []
