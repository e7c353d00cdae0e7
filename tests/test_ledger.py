"""
Ledger service tests.

Tests for:
- Manual adjustments and the balance/ledger pairing
- Non-negative balance under stale reads and concurrent deductions
- Earn/redeem/expire entries and their references
- Purchase accrual, discount redemption and refunds
- points_changed signal on commit
"""

import threading
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import DatabaseError, connections, transaction

from pointledger.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from pointledger.gates import Gates
from pointledger.models import Customer, LoyaltyTransaction, ReferenceType, TransactionType
from pointledger.services import history, ledger, program
from pointledger.signals import points_changed

pytestmark = pytest.mark.django_db


def _balance(customer):
    return Customer.objects.values_list("loyalty_points", flat=True).get(pk=customer.pk)


class TestAdjustPoints:
    def test_add_points(self, customer, manager):
        result = ledger.adjust_points(customer.pk, 500, "Welcome bonus", manager)

        assert result.customer.loyalty_points == 500
        entry = result.transaction
        assert entry.type == TransactionType.ADJUST
        assert entry.points == 500
        assert entry.points_balance == 500
        assert entry.reference_type == ReferenceType.MANUAL
        assert entry.reference_id == str(manager.pk)
        assert entry.performed_by == manager
        assert entry.reason == "Welcome bonus"

    def test_deduct_points(self, customer, manager):
        ledger.adjust_points(customer.pk, 500, "Welcome bonus", manager)
        result = ledger.adjust_points(customer.pk, -120, "Correction", manager)

        assert result.transaction.points == -120
        assert result.transaction.points_balance == 380
        assert _balance(customer) == 380

    def test_reason_is_stripped(self, customer, manager):
        result = ledger.adjust_points(customer.pk, 10, "  Goodwill  ", manager)
        assert result.transaction.reason == "Goodwill"

    def test_overdraw_rejected_without_side_effects(self, customer, manager):
        ledger.adjust_points(customer.pk, 100, "Welcome", manager)

        with pytest.raises(InsufficientBalanceError) as exc:
            ledger.adjust_points(customer.pk, -150, "Too much", manager)

        assert exc.value.data["available"] == 100
        assert exc.value.data["requested"] == 150
        assert _balance(customer) == 100
        assert LoyaltyTransaction.objects.filter(customer=customer).count() == 1

    def test_zero_points_rejected(self, customer, manager):
        with pytest.raises(ValidationError) as exc:
            ledger.adjust_points(customer.pk, 0, "Nothing", manager)
        assert exc.value.code == "INVALID_POINTS"

    def test_blank_reason_rejected(self, customer, manager):
        with pytest.raises(ValidationError) as exc:
            ledger.adjust_points(customer.pk, 10, " ", manager)
        assert exc.value.code == "REASON_REQUIRED"
        assert not LoyaltyTransaction.objects.exists()

    def test_unknown_customer(self, db, manager):
        with pytest.raises(NotFoundError):
            ledger.adjust_points(99999, 10, "Ghost", manager)

    def test_inactive_customer(self, customer, manager):
        Customer.objects.filter(pk=customer.pk).update(is_active=False)
        with pytest.raises(NotFoundError):
            ledger.adjust_points(customer.pk, 10, "Inactive", manager)

    def test_customers_are_independent(self, customer, customer_b, manager):
        ledger.adjust_points(customer.pk, 100, "A", manager)
        ledger.adjust_points(customer_b.pk, 40, "B", manager)
        assert _balance(customer) == 100
        assert _balance(customer_b) == 40


class TestScenario:
    def test_adjust_redeem_overdraw(self, customer, manager):
        """+500, redeem 200, then -400 fails leaving 300 and two entries."""
        ledger.adjust_points(customer.pk, 500, "Opening", manager)
        redeem = ledger.record_redeem(customer.pk, 200, Decimal("2.00"), "sale-10")

        assert redeem.points == -200
        assert redeem.points_balance == 300
        assert redeem.value == Decimal("2.00")

        with pytest.raises(InsufficientBalanceError):
            ledger.adjust_points(customer.pk, -400, "Correction", manager)

        assert _balance(customer) == 300
        entries = LoyaltyTransaction.objects.filter(customer=customer).order_by("timestamp", "id")
        assert [e.points_balance for e in entries] == [500, 300]

    def test_earn_overdraw_redeem(self, customer, manager):
        """Earn 500, a -600 adjustment fails, then redeeming 500 empties the balance."""
        ledger.record_earn(customer.pk, 500, "sale-1")

        with pytest.raises(InsufficientBalanceError):
            ledger.adjust_points(customer.pk, -600, "Correction", manager)

        assert _balance(customer) == 500
        assert LoyaltyTransaction.objects.filter(customer=customer).count() == 1

        redeem = ledger.record_redeem(customer.pk, 500, "5.00", "sale-2")
        assert redeem.points_balance == 0
        assert _balance(customer) == 0
        assert history.audit_ledger(customer.pk).consistent

    def test_ledger_reconstructs_balance(self, customer, manager):
        ledger.adjust_points(customer.pk, 800, "Opening", manager)
        ledger.record_earn(customer.pk, 250, "sale-1")
        ledger.record_redeem(customer.pk, 300, "3.00", "sale-2")
        ledger.expire_points(customer.pk, 50)
        ledger.adjust_points(customer.pk, -100, "Correction", manager)

        entries = LoyaltyTransaction.objects.filter(customer=customer)
        assert sum(e.points for e in entries) == _balance(customer) == 600
        assert history.audit_ledger(customer.pk).consistent
        assert Gates.ledger_continuity(customer.pk).passed


class TestEntries:
    def test_record_earn(self, customer):
        entry = ledger.record_earn(customer.pk, 120, "sale-7", metadata={"channel": "pos"})
        assert entry.type == TransactionType.EARN
        assert entry.reference_type == ReferenceType.TRANSACTION
        assert entry.reference_id == "sale-7"
        assert entry.reason == "Points earned on transaction sale-7"
        assert entry.metadata == {"channel": "pos"}
        assert entry.performed_by is None

    def test_record_earn_rejects_negative(self, customer):
        with pytest.raises(ValidationError):
            ledger.record_earn(customer.pk, -5, "sale-7")

    def test_record_redeem_rejects_negative_value(self, customer):
        ledger.record_earn(customer.pk, 500, "sale-1")
        with pytest.raises(ValidationError):
            ledger.record_redeem(customer.pk, 100, "-1", "sale-2")
        assert _balance(customer) == 500

    @pytest.mark.parametrize("value", ["10000000000", "1.005", "NaN"])
    def test_record_redeem_value_must_fit(self, customer, value):
        ledger.record_earn(customer.pk, 500, "sale-1")
        with pytest.raises(ValidationError):
            ledger.record_redeem(customer.pk, 100, value, "sale-2")
        assert _balance(customer) == 500
        assert LoyaltyTransaction.objects.filter(customer=customer).count() == 1

    def test_expire_points(self, customer):
        ledger.record_earn(customer.pk, 300, "sale-1")
        entry = ledger.expire_points(customer.pk, 300, reason="Inactive for a year")

        assert entry.type == TransactionType.EXPIRE
        assert entry.reference_type == ReferenceType.SYSTEM
        assert entry.reference_id == ""
        assert entry.points == -300
        assert entry.points_balance == 0

    def test_expire_more_than_balance(self, customer):
        ledger.record_earn(customer.pk, 10, "sale-1")
        with pytest.raises(InsufficientBalanceError):
            ledger.expire_points(customer.pk, 11)


class TestBalanceGuard:
    def test_stale_balance_read_cannot_overdraw(self, customer):
        """The conditional update holds even if the locked read was stale."""
        ledger.record_earn(customer.pk, 100, "sale-1")
        stale = Customer.objects.get(pk=customer.pk)
        stale.loyalty_points = 1000

        with pytest.raises(InsufficientBalanceError):
            with transaction.atomic():
                ledger._post_entry(
                    stale,
                    -500,
                    TransactionType.ADJUST,
                    ReferenceType.MANUAL,
                    reason="Stale",
                )

        assert _balance(customer) == 100
        assert LoyaltyTransaction.objects.filter(customer=customer).count() == 1

    def test_apply_delta_guard(self, customer):
        ledger.record_earn(customer.pk, 50, "sale-1")
        with pytest.raises(InsufficientBalanceError) as exc:
            ledger._apply_delta(customer.pk, -51)
        assert exc.value.data["available"] == 50

    def test_sequential_deductions_serialize(self, customer):
        ledger.record_earn(customer.pk, 250, "sale-1")
        outcomes = []
        for i in range(3):
            try:
                ledger.record_redeem(customer.pk, 100, "1.00", f"sale-{i + 2}")
                outcomes.append("ok")
            except InsufficientBalanceError:
                outcomes.append("rejected")

        assert outcomes == ["ok", "ok", "rejected"]
        assert _balance(customer) == 50

    def test_database_timeout_becomes_storage_error(self, customer):
        ledger.record_earn(customer.pk, 100, "sale-1")
        error = DatabaseError("canceling statement due to lock timeout")
        with patch("pointledger.services.ledger._apply_delta", side_effect=error):
            with pytest.raises(StorageError) as exc:
                ledger.record_redeem(customer.pk, 10, "0.10", "sale-2")

        assert exc.value.code == "STORAGE_TIMEOUT"
        assert exc.value.status_code == 500
        assert _balance(customer) == 100
        assert LoyaltyTransaction.objects.filter(customer=customer).count() == 1

    def test_database_failure_becomes_storage_error(self, customer):
        with patch("pointledger.services.ledger._apply_delta", side_effect=DatabaseError("gone")):
            with pytest.raises(StorageError) as exc:
                ledger.record_earn(customer.pk, 10, "sale-1")
        assert exc.value.code == "STORAGE_UNAVAILABLE"


def _race(workers, action):
    """Start every worker at once; collect one outcome per worker."""
    outcomes = []
    barrier = threading.Barrier(workers)

    def run(i):
        try:
            barrier.wait()
            action(i)
            outcomes.append("ok")
        except (InsufficientBalanceError, StorageError):
            outcomes.append("rejected")
        except Exception as exc:
            outcomes.append(f"error: {exc!r}")
        finally:
            connections.close_all()

    threads = [threading.Thread(target=run, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


@pytest.mark.django_db(transaction=True)
class TestConcurrentDeductions:
    def test_parallel_redemptions_never_overdraw(self):
        customer = Customer.objects.create(code="CONC-1", first_name="Race")
        ledger.record_earn(customer.pk, 500, "sale-0")

        outcomes = _race(10, lambda i: ledger.record_redeem(customer.pk, 100, "1.00", f"sale-{i + 1}"))

        assert set(outcomes) <= {"ok", "rejected"}, outcomes
        ok = outcomes.count("ok")
        assert 1 <= ok <= 5
        assert _balance(customer) == 500 - 100 * ok
        assert LoyaltyTransaction.objects.filter(customer=customer).count() == 1 + ok
        assert history.audit_ledger(customer.pk).consistent

    def test_parallel_adjustments_never_overdraw(self, django_user_model):
        """Two managers deduct 60 from 100 at the same time: one wins."""
        manager = django_user_model.objects.create_user("race-manager")
        for round_no in range(8):
            customer = Customer.objects.create(code=f"CONC-ADJ-{round_no}", first_name="Race")
            ledger.adjust_points(customer.pk, 100, "Opening", manager)

            outcomes = _race(2, lambda i, pk=customer.pk: ledger.adjust_points(pk, -60, f"Correction {i}", manager))

            assert set(outcomes) <= {"ok", "rejected"}, outcomes
            assert outcomes.count("ok") <= 1, outcomes
            assert _balance(customer) == 100 - 60 * outcomes.count("ok")
            entries = LoyaltyTransaction.objects.filter(customer=customer)
            assert entries.count() == 1 + outcomes.count("ok")
            assert all(e.points_balance >= 0 for e in entries)
            assert history.audit_ledger(customer.pk).consistent


class TestRecordPurchase:
    def test_awards_points_and_updates_stats(self, customer, plain_settings):
        entry = ledger.record_purchase(customer.pk, Decimal("100.00"), "sale-1")

        customer.refresh_from_db()
        assert entry.points == 1000
        assert entry.reason == "Purchase sale-1"
        assert entry.metadata["status"] == "standard"
        assert entry.metadata["purchase_amount"] == "100.00"
        assert customer.loyalty_points == 1000
        assert customer.total_spent == Decimal("100.00")
        assert customer.purchase_count == 1
        assert customer.last_purchase_at is not None

    def test_status_from_previous_spend(self, customer, plain_settings):
        Customer.objects.filter(pk=customer.pk).update(total_spent=Decimal("1000"))
        entry = ledger.record_purchase(customer.pk, 100, "sale-2")
        assert entry.metadata["status"] == "gold"
        assert entry.points == 1200

    def test_disabled_program_updates_stats_only(self, customer, plain_settings):
        program.update_settings({"enabled": False})
        assert ledger.record_purchase(customer.pk, 100, "sale-1") is None

        customer.refresh_from_db()
        assert customer.purchase_count == 1
        assert customer.loyalty_points == 0
        assert not LoyaltyTransaction.objects.exists()

    def test_negative_amount_rejected(self, customer, plain_settings):
        with pytest.raises(ValidationError):
            ledger.record_purchase(customer.pk, -1, "sale-1")

    @pytest.mark.parametrize("amount", [Decimal("1e14"), "100000000000000", "19.999", "NaN", "Infinity"])
    def test_amount_must_fit_total_spent(self, customer, plain_settings, amount):
        with pytest.raises(ValidationError) as exc:
            ledger.record_purchase(customer.pk, amount, "sale-big")

        assert exc.value.status_code == 400
        customer.refresh_from_db()
        assert customer.total_spent == Decimal("0")
        assert customer.purchase_count == 0
        assert not LoyaltyTransaction.objects.exists()

    def test_running_total_must_fit_total_spent(self, customer, plain_settings):
        Customer.objects.filter(pk=customer.pk).update(total_spent=Decimal("999999999999.00"))

        with pytest.raises(ValidationError, match="overflow"):
            ledger.record_purchase(customer.pk, Decimal("1.00"), "sale-1")

        customer.refresh_from_db()
        assert customer.total_spent == Decimal("999999999999.00")
        assert customer.purchase_count == 0
        assert _balance(customer) == 0

    def test_largest_amount_accepted(self, customer, plain_settings):
        program.update_settings({"enabled": False})
        ledger.record_purchase(customer.pk, "999999999999.99", "sale-1")

        customer.refresh_from_db()
        assert customer.total_spent == Decimal("999999999999.99")


class TestRedeemForDiscount:
    def test_redeem_at_rate(self, customer):
        ledger.record_earn(customer.pk, 1000, "sale-1")
        entry = ledger.redeem_for_discount(customer.pk, 500, "sale-2")

        assert entry.type == TransactionType.REDEEM
        assert entry.points == -500
        assert entry.value == Decimal("5.00")
        assert entry.points_balance == 500

    def test_below_minimum(self, customer):
        ledger.record_earn(customer.pk, 1000, "sale-1")
        with pytest.raises(ValidationError) as exc:
            ledger.redeem_for_discount(customer.pk, 50, "sale-2")
        assert exc.value.code == "BELOW_MINIMUM_REDEMPTION"

    def test_program_disabled(self, customer):
        ledger.record_earn(customer.pk, 1000, "sale-1")
        program.update_settings({"enabled": False})
        with pytest.raises(ValidationError) as exc:
            ledger.redeem_for_discount(customer.pk, 500, "sale-2")
        assert exc.value.code == "PROGRAM_DISABLED"

    def test_insufficient_balance(self, customer):
        ledger.record_earn(customer.pk, 150, "sale-1")
        with pytest.raises(InsufficientBalanceError):
            ledger.redeem_for_discount(customer.pk, 200, "sale-2")


class TestReverseEarn:
    def test_reverse_full(self, customer):
        ledger.record_earn(customer.pk, 300, "sale-1")
        entry = ledger.reverse_earn(customer.pk, 300, "sale-1")

        assert entry.type == TransactionType.ADJUST
        assert entry.reference_type == ReferenceType.TRANSACTION
        assert entry.points == -300
        assert entry.reason == "Refund of transaction sale-1"

    def test_reverse_capped_at_balance(self, customer):
        ledger.record_earn(customer.pk, 300, "sale-1")
        ledger.record_redeem(customer.pk, 200, "2.00", "sale-2")

        entry = ledger.reverse_earn(customer.pk, 300, "sale-1")
        assert entry.points == -100
        assert entry.metadata == {"requested": 300}
        assert _balance(customer) == 0

    def test_nothing_to_reverse(self, customer):
        assert ledger.reverse_earn(customer.pk, 300, "sale-1") is None


class TestPointsChangedSignal:
    def test_sent_on_commit(self, customer, manager, django_capture_on_commit_callbacks):
        received = []

        def handler(sender, transaction, customer_id, **kwargs):
            received.append((customer_id, transaction.points))

        points_changed.connect(handler)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                ledger.adjust_points(customer.pk, 75, "Bonus", manager)
        finally:
            points_changed.disconnect(handler)

        assert received == [(customer.pk, 75)]

    def test_not_sent_for_rejected_change(self, customer, manager, django_capture_on_commit_callbacks):
        received = []

        def handler(sender, **kwargs):
            received.append(kwargs)

        points_changed.connect(handler)
        try:
            with django_capture_on_commit_callbacks(execute=True) as callbacks:
                with pytest.raises(InsufficientBalanceError):
                    ledger.adjust_points(customer.pk, -10, "Overdraw", manager)
        finally:
            points_changed.disconnect(handler)

        assert callbacks == []
        assert received == []
