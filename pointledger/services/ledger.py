"""Points adjustment service - every balance change goes through here.

Each operation runs as one transaction.atomic() unit that:
    1. locks the customer row (select_for_update)
    2. checks the deduction against the locked balance
    3. applies the delta with a conditional UPDATE (loyalty_points >= -delta)
    4. appends the LoyaltyTransaction carrying the new balance

The balance write and the ledger insert commit or roll back together.
Nothing is retried here: on StorageError the caller decides, so a delta is
never applied twice.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from functools import partial

from django.db import DatabaseError, connection, transaction
from django.db.models import F
from django.utils import timezone

from pointledger.conf import ledger_settings
from pointledger.exceptions import InsufficientBalanceError, NotFoundError, StorageError, ValidationError
from pointledger.gates import Gates
from pointledger.models import (
    Customer,
    LoyaltyTransaction,
    ReferenceType,
    TransactionType,
)
from pointledger.services import accrual, program
from pointledger.signals import points_changed
from pointledger.utils import column_error, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class AdjustmentResult:
    """Outcome of a manual adjustment."""

    customer: Customer
    transaction: LoyaltyTransaction


# ======================================================================
# Public operations
# ======================================================================


def adjust_points(customer_id: int, points_delta: int, reason: str, performed_by) -> AdjustmentResult:
    """
    Manually add (positive) or deduct (negative) points.

    Args:
        customer_id: Customer pk
        points_delta: Signed, non-zero change
        reason: Why (required)
        performed_by: User making the adjustment

    Returns:
        AdjustmentResult with the refreshed customer and the ledger entry

    Raises:
        ValidationError: If points_delta is 0 or reason is blank
        NotFoundError: If customer not found
        InsufficientBalanceError: If the deduction exceeds the balance
        StorageError: On database failure or timeout
    """
    Gates.points_delta(points_delta, reason)

    with _mutation("adjust", customer_id):
        customer = _lock_customer(customer_id)
        entry = _post_entry(
            customer,
            points_delta,
            TransactionType.ADJUST,
            ReferenceType.MANUAL,
            reference_id=_principal_id(performed_by),
            reason=reason.strip(),
            performed_by=performed_by,
        )

    return AdjustmentResult(customer=customer, transaction=entry)


def record_earn(
    customer_id: int,
    points: int,
    source_transaction_id,
    reason: str = "",
    performed_by=None,
    metadata: dict | None = None,
) -> LoyaltyTransaction:
    """
    Award points earned on a sale.

    Raises:
        ValidationError: If points <= 0
        NotFoundError: If customer not found
        StorageError: On database failure or timeout
    """
    reason = reason or f"Points earned on transaction {source_transaction_id}"
    Gates.points_delta(points, reason, allow_negative=False)

    with _mutation("earn", customer_id):
        customer = _lock_customer(customer_id)
        return _post_entry(
            customer,
            points,
            TransactionType.EARN,
            ReferenceType.TRANSACTION,
            reference_id=str(source_transaction_id),
            reason=reason,
            performed_by=performed_by,
            metadata=metadata,
        )


def record_redeem(
    customer_id: int,
    points: int,
    value,
    source_transaction_id,
    reason: str = "",
    performed_by=None,
    metadata: dict | None = None,
) -> LoyaltyTransaction:
    """
    Deduct redeemed points. The entry stores -points and the monetary value.

    Raises:
        ValidationError: If points <= 0 or value is negative
        NotFoundError: If customer not found
        InsufficientBalanceError: If points exceed the balance
        StorageError: On database failure or timeout
    """
    reason = reason or f"Points redeemed on transaction {source_transaction_id}"
    Gates.points_delta(points, reason, allow_negative=False)
    amount = _money(value, LoyaltyTransaction, "value", "Redemption value")

    with _mutation("redeem", customer_id):
        customer = _lock_customer(customer_id)
        return _post_entry(
            customer,
            -points,
            TransactionType.REDEEM,
            ReferenceType.TRANSACTION,
            reference_id=str(source_transaction_id),
            reason=reason,
            performed_by=performed_by,
            value=amount,
            metadata=metadata,
        )


def expire_points(customer_id: int, points: int, reason: str = "Points expired") -> LoyaltyTransaction:
    """
    System expiry of points (no acting user).

    Raises:
        ValidationError: If points <= 0
        NotFoundError: If customer not found
        InsufficientBalanceError: If points exceed the balance
        StorageError: On database failure or timeout
    """
    Gates.points_delta(points, reason, allow_negative=False)

    with _mutation("expire", customer_id):
        customer = _lock_customer(customer_id)
        return _post_entry(
            customer,
            -points,
            TransactionType.EXPIRE,
            ReferenceType.SYSTEM,
            reason=reason,
        )


def record_purchase(
    customer_id: int,
    amount,
    source_transaction_id,
    category_id=None,
    performed_by=None,
    now=None,
) -> LoyaltyTransaction | None:
    """
    Register a completed sale: update purchase stats and award points.

    Status is derived from total_spent before this purchase. Stats and the
    earn entry are written in the same atomic unit.

    Returns:
        The earn entry, or None when the purchase earns no points
    """
    total = _money(amount, Customer, "total_spent", "Purchase amount")

    settings = program.get_settings()
    now = now or timezone.now()

    with _mutation("purchase", customer_id):
        customer = _lock_customer(customer_id)
        if column_error(Customer, "total_spent", customer.total_spent + total):
            raise ValidationError(
                message="Purchase would overflow the customer's total spent",
                amount=str(total),
                total_spent=str(customer.total_spent),
            )
        status = accrual.determine_status(settings, customer.total_spent)
        points = accrual.compute_earned_points(
            settings, total, status, category_id=category_id, now=now
        )

        Customer.objects.filter(pk=customer.pk).update(
            total_spent=F("total_spent") + total,
            purchase_count=F("purchase_count") + 1,
            last_purchase_at=now,
            updated_at=timezone.now(),
        )
        customer.refresh_from_db(fields=["total_spent", "purchase_count", "last_purchase_at"])

        if points <= 0:
            return None

        return _post_entry(
            customer,
            points,
            TransactionType.EARN,
            ReferenceType.TRANSACTION,
            reference_id=str(source_transaction_id),
            reason=f"Purchase {source_transaction_id}",
            performed_by=performed_by,
            metadata={
                "purchase_amount": str(total),
                "status": status,
                "category_id": str(category_id) if category_id is not None else None,
            },
        )


def redeem_for_discount(
    customer_id: int,
    points: int,
    source_transaction_id,
    performed_by=None,
) -> LoyaltyTransaction:
    """
    Redeem points at the configured rate (minimum and cap applied).

    Raises:
        ValidationError: If the program is disabled or points < minimum_redemption
        InsufficientBalanceError: If points exceed the balance
    """
    Gates.points_delta(points, f"Redemption on transaction {source_transaction_id}", allow_negative=False)
    settings = program.get_settings()
    if not settings.enabled:
        raise ValidationError("PROGRAM_DISABLED")
    if points < settings.minimum_redemption:
        raise ValidationError(
            "BELOW_MINIMUM_REDEMPTION",
            message=f"At least {settings.minimum_redemption} points must be redeemed",
            minimum=settings.minimum_redemption,
            requested=points,
        )

    value = accrual.calculate_redemption_value(settings, points)
    return record_redeem(
        customer_id,
        points,
        value,
        source_transaction_id,
        reason=f"Redeemed {points} points for {value} discount",
        performed_by=performed_by,
        metadata={"redemption_rate": str(settings.redemption_rate)},
    )


def reverse_earn(
    customer_id: int,
    points: int,
    source_transaction_id,
    performed_by=None,
) -> LoyaltyTransaction | None:
    """
    Take back points awarded on a refunded sale.

    Deducts at most the current balance (points may already be spent).
    Recorded as an ADJUST entry referencing the sale.

    Returns:
        The adjust entry, or None if the balance is already 0
    """
    reason = f"Refund of transaction {source_transaction_id}"
    Gates.points_delta(points, reason, allow_negative=False)

    with _mutation("reverse", customer_id):
        customer = _lock_customer(customer_id)
        deduct = min(points, customer.loyalty_points)
        if deduct == 0:
            return None
        return _post_entry(
            customer,
            -deduct,
            TransactionType.ADJUST,
            ReferenceType.TRANSACTION,
            reference_id=str(source_transaction_id),
            reason=reason,
            performed_by=performed_by,
            metadata={"requested": points},
        )


# ======================================================================
# Internals
# ======================================================================


@contextmanager
def _mutation(operation: str, customer_id):
    """Atomic unit with bounded database waits; DB failures become StorageError."""
    try:
        with transaction.atomic():
            _bound_waits()
            yield
    except DatabaseError as exc:
        logger.exception("Loyalty %s failed for customer %s", operation, customer_id)
        code = "STORAGE_TIMEOUT" if "timeout" in str(exc).lower() else "STORAGE_UNAVAILABLE"
        raise StorageError(code, customer_id=customer_id) from exc


def _money(value, model, field: str, label: str) -> Decimal:
    """Non-negative finite amount that fits model.field."""
    amount = to_decimal(value)
    if amount is None or not amount.is_finite() or amount < 0:
        raise ValidationError(message=f"{label} must be a non-negative number", value=str(value))
    error = column_error(model, field, amount)
    if error:
        raise ValidationError(message=f"{label} does not fit: {error}", value=str(value))
    return amount


def _bound_waits() -> None:
    timeout = ledger_settings.STORAGE_TIMEOUT
    if not timeout or connection.vendor != "postgresql":
        return
    ms = int(timeout * 1000)
    with connection.cursor() as cursor:
        cursor.execute(f"SET LOCAL lock_timeout = {ms}")
        cursor.execute(f"SET LOCAL statement_timeout = {ms}")


def _lock_customer(customer_id) -> Customer:
    """
    Get active customer with row-level lock.

    MUST be called inside transaction.atomic().
    """
    try:
        return Customer.objects.select_for_update().get(pk=customer_id, is_active=True)
    except (Customer.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(customer_id=customer_id)


def _post_entry(
    customer: Customer,
    delta: int,
    entry_type: str,
    reference_type: str,
    reason: str,
    reference_id: str = "",
    performed_by=None,
    value: Decimal = Decimal("0"),
    metadata: dict | None = None,
) -> LoyaltyTransaction:
    """Apply delta to the locked customer and append the ledger entry."""
    try:
        Gates.sufficient_balance(customer.loyalty_points, delta)
        _apply_delta(customer.pk, delta)
    except InsufficientBalanceError as exc:
        logger.warning(
            "Loyalty %s rejected for customer %s: balance %s, requested %s",
            entry_type,
            customer.pk,
            exc.data.get("available"),
            exc.data.get("requested"),
        )
        raise

    customer.refresh_from_db(fields=["loyalty_points", "updated_at"])

    entry = LoyaltyTransaction.objects.create(
        customer=customer,
        type=entry_type,
        points=delta,
        points_balance=customer.loyalty_points,
        reference_type=reference_type,
        reference_id=reference_id,
        reason=reason,
        value=value,
        performed_by=performed_by if getattr(performed_by, "pk", None) else None,
        metadata=metadata or {},
    )

    logger.info(
        "Loyalty %s for customer %s: %+d pts, balance %s",
        entry_type,
        customer.pk,
        delta,
        entry.points_balance,
    )
    transaction.on_commit(partial(_notify, entry))
    return entry


def _apply_delta(customer_id: int, delta: int) -> None:
    """
    Conditional balance update: succeeds only if the result stays >= 0.

    Guards against a stale balance read even where select_for_update is
    a no-op (SQLite).
    """
    updated = Customer.objects.filter(
        pk=customer_id,
        loyalty_points__gte=max(-delta, 0),
    ).update(
        loyalty_points=F("loyalty_points") + delta,
        updated_at=timezone.now(),
    )
    if not updated:
        available = (
            Customer.objects.filter(pk=customer_id)
            .values_list("loyalty_points", flat=True)
            .first()
        )
        raise InsufficientBalanceError(available=available, requested=-delta)


def _notify(entry: LoyaltyTransaction) -> None:
    points_changed.send(
        sender=LoyaltyTransaction,
        transaction=entry,
        customer_id=entry.customer_id,
    )


def _principal_id(user) -> str:
    pk = getattr(user, "pk", None)
    return str(pk) if pk is not None else ""
