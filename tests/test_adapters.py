"""Tests for the LoyaltyBackend protocol and the local adapter."""

from decimal import Decimal

import pytest

from pointledger.adapters import get_loyalty_backend
from pointledger.adapters.local import LocalLoyaltyBackend
from pointledger.protocols import LedgerEntryInfo, LoyaltyBackend, PointsSummary
from pointledger.service import LoyaltyService

pytestmark = pytest.mark.django_db


@pytest.fixture
def backend():
    return get_loyalty_backend()


class TestBackendLoading:
    def test_default_backend(self, backend):
        assert isinstance(backend, LocalLoyaltyBackend)
        assert isinstance(backend, LoyaltyBackend)

    def test_configured_backend(self, settings):
        settings.POINTLEDGER = {"LOYALTY_BACKEND": "pointledger.adapters.local.LocalLoyaltyBackend"}
        assert isinstance(get_loyalty_backend(), LocalLoyaltyBackend)


class TestLocalBackend:
    def test_summary(self, backend, customer):
        summary = backend.get_summary(customer.pk)
        assert summary == PointsSummary(
            customer_id=customer.pk,
            name="John Doe",
            loyalty_points=0,
            status="standard",
        )

    def test_summary_unknown_customer(self, backend, db):
        assert backend.get_summary(123456) is None

    def test_purchase_redeem_reverse(self, backend, customer, plain_settings):
        earned = backend.award_for_purchase(customer.pk, Decimal("60.00"), "order-1")
        assert isinstance(earned, LedgerEntryInfo)
        assert earned.type == "earn"
        assert earned.points == 600

        redeemed = backend.redeem(customer.pk, 200, "order-2")
        assert redeemed.points == -200
        assert redeemed.value == Decimal("2.00")
        assert redeemed.points_balance == 400

        reversed_entry = backend.reverse(customer.pk, 600, "order-1")
        assert reversed_entry.points == -400
        assert reversed_entry.points_balance == 0

    def test_purchase_without_points(self, backend, customer, plain_settings):
        LoyaltyService.update_settings({"enabled": False})
        assert backend.award_for_purchase(customer.pk, Decimal("60.00"), "order-1") is None


class TestLoyaltyService:
    def test_status_follows_spend(self, customer):
        customer.total_spent = Decimal("600")
        customer.save()
        assert LoyaltyService.customer_status(customer.pk) == "silver"

    def test_balance(self, customer, manager):
        LoyaltyService.adjust_points(customer.pk, 30, "Welcome", manager)
        assert LoyaltyService.get_balance(customer.pk) == 30

    def test_compute_uses_current_settings(self, plain_settings):
        assert LoyaltyService.compute_earned_points(Decimal("10"), "platinum") == 150

    def test_redemption_value(self, db):
        assert LoyaltyService.redemption_value(250) == Decimal("2.50")
