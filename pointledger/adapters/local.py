"""In-process LoyaltyBackend adapter."""

from decimal import Decimal

from pointledger.exceptions import NotFoundError
from pointledger.models import LoyaltyTransaction
from pointledger.protocols.loyalty import LedgerEntryInfo, PointsSummary
from pointledger.service import LoyaltyService


def _info(entry: LoyaltyTransaction | None) -> LedgerEntryInfo | None:
    if entry is None:
        return None
    return LedgerEntryInfo(
        entry_id=entry.pk,
        type=entry.type,
        points=entry.points,
        points_balance=entry.points_balance,
        value=entry.value,
        timestamp=entry.timestamp,
    )


class LocalLoyaltyBackend:
    """
    Adapter that implements LoyaltyBackend with the local services.

    Configuration in settings.py:
        POINTLEDGER = {
            "LOYALTY_BACKEND": "pointledger.adapters.local.LocalLoyaltyBackend",
        }
    """

    service = LoyaltyService

    def get_summary(self, customer_id: int) -> PointsSummary | None:
        from pointledger.services import history

        try:
            customer = history.get_customer(customer_id)
        except NotFoundError:
            return None
        return PointsSummary(
            customer_id=customer.pk,
            name=customer.name,
            loyalty_points=customer.loyalty_points,
            status=self.service.customer_status(customer.pk),
        )

    def award_for_purchase(
        self,
        customer_id: int,
        amount: Decimal,
        order_ref: str,
        category_id: str | None = None,
    ) -> LedgerEntryInfo | None:
        entry = self.service.record_purchase(customer_id, amount, order_ref, category_id=category_id)
        return _info(entry)

    def redeem(self, customer_id: int, points: int, order_ref: str) -> LedgerEntryInfo:
        return _info(self.service.redeem_for_discount(customer_id, points, order_ref))

    def reverse(self, customer_id: int, points: int, order_ref: str) -> LedgerEntryInfo | None:
        return _info(self.service.reverse_earn(customer_id, points, order_ref))
