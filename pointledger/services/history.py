"""Ledger queries - history listing, counting and audit.

get_customer_transactions() and count_transactions() share one queryset
builder, so a count always matches the unpaginated listing.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from django.db import DatabaseError
from django.db.models import Exists, OuterRef
from django.utils import timezone

from pointledger.conf import ledger_settings
from pointledger.exceptions import NotFoundError, StorageError, ValidationError
from pointledger.models import Customer, LoyaltyTransaction, TransactionType
from pointledger.utils import parse_moment

logger = logging.getLogger(__name__)


@dataclass
class LedgerAudit:
    """Result of replaying a customer's ledger."""

    customer_id: int
    stored_balance: int
    opening_balance: int
    replayed_balance: int
    entries: int
    first_break_id: int | None = None

    @property
    def consistent(self) -> bool:
        return self.first_break_id is None and self.replayed_balance == self.stored_balance


def get_customer(customer_id) -> Customer:
    """Get active customer or raise NotFoundError."""
    try:
        return Customer.objects.get(pk=customer_id, is_active=True)
    except (Customer.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(customer_id=customer_id)
    except DatabaseError as exc:
        logger.exception("Customer %s could not be loaded", customer_id)
        raise StorageError() from exc


def get_customer_transactions(
    customer_id,
    start_date=None,
    end_date=None,
    type: str | None = None,
    limit: int | None = None,
    skip: int = 0,
) -> list[LoyaltyTransaction]:
    """
    Customer ledger entries, newest first.

    Args:
        customer_id: Customer pk
        start_date: Lower bound (inclusive), datetime/date/ISO string
        end_date: Upper bound (inclusive); a date covers the whole day
        type: earn, redeem, adjust or expire
        limit: Page size (default DEFAULT_PAGE_SIZE, capped at MAX_PAGE_SIZE)
        skip: Entries to skip

    Raises:
        NotFoundError: If customer not found
        ValidationError: If a filter is invalid
    """
    if limit is None:
        limit = ledger_settings.DEFAULT_PAGE_SIZE
    if limit < 1 or skip < 0:
        raise ValidationError(
            "INVALID_FILTER",
            message="limit must be positive and skip non-negative",
            limit=limit,
            skip=skip,
        )
    limit = min(limit, ledger_settings.MAX_PAGE_SIZE)

    qs = _filtered(get_customer(customer_id), start_date, end_date, type)
    try:
        return list(qs.order_by("-timestamp", "-id")[skip : skip + limit])
    except DatabaseError as exc:
        logger.exception("Loyalty history query failed for customer %s", customer_id)
        raise StorageError() from exc


def count_transactions(customer_id, start_date=None, end_date=None, type: str | None = None) -> int:
    """Number of entries matching the same filters as get_customer_transactions()."""
    qs = _filtered(get_customer(customer_id), start_date, end_date, type)
    try:
        return qs.count()
    except DatabaseError as exc:
        logger.exception("Loyalty history count failed for customer %s", customer_id)
        raise StorageError() from exc


def audit_ledger(customer_id) -> LedgerAudit:
    """
    Replay the customer's ledger in (timestamp, id) order.

    The opening balance is the balance implied by the first entry (0 for
    customers whose whole history is in the ledger). Each entry must equal
    the previous balance plus its points; the final replayed balance must
    equal Customer.loyalty_points.
    """
    customer = get_customer(customer_id)
    entries = LoyaltyTransaction.objects.filter(customer=customer).order_by("timestamp", "id")

    opening = None
    running = None
    count = 0
    first_break = None
    for entry in entries.iterator():
        count += 1
        if running is None:
            opening = entry.points_balance - entry.points
            running = opening
        running += entry.points
        if first_break is None and running != entry.points_balance:
            first_break = entry.pk

    if running is None:
        opening = running = customer.loyalty_points

    return LedgerAudit(
        customer_id=customer.pk,
        stored_balance=customer.loyalty_points,
        opening_balance=opening,
        replayed_balance=running,
        entries=count,
        first_break_id=first_break,
    )


def expirable_customers(expiration_days: int, now=None):
    """
    Active customers holding points with no earning activity in the last
    `expiration_days` days. Empty when expiration_days is 0.
    """
    if not expiration_days:
        return Customer.objects.none()

    cutoff = (now or timezone.now()) - timedelta(days=expiration_days)
    recent_activity = LoyaltyTransaction.objects.filter(
        customer=OuterRef("pk"),
        points__gt=0,
        timestamp__gte=cutoff,
    )
    return (
        Customer.objects.filter(
            is_active=True,
            loyalty_points__gt=0,
            created_at__lt=cutoff,
        )
        .filter(~Exists(recent_activity))
        .order_by("pk")
    )


def _filtered(customer: Customer, start_date, end_date, type: str | None):
    qs = LoyaltyTransaction.objects.filter(customer=customer)

    if type:
        if type not in TransactionType.values:
            raise ValidationError(
                "INVALID_FILTER",
                message=f"Unknown transaction type: {type}",
                type=type,
            )
        qs = qs.filter(type=type)

    start = _bound("startDate", start_date)
    end = _bound("endDate", end_date, end_of_day=True)
    if start and end and start > end:
        raise ValidationError("INVALID_FILTER", message="startDate is after endDate")
    if start:
        qs = qs.filter(timestamp__gte=start)
    if end:
        qs = qs.filter(timestamp__lte=end)
    return qs


def _bound(name: str, value, end_of_day: bool = False):
    if value in (None, ""):
        return None
    moment = parse_moment(value, end_of_day=end_of_day)
    if moment is None:
        raise ValidationError("INVALID_FILTER", message=f"{name} is not a valid date", value=str(value))
    return moment
