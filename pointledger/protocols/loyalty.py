"""Loyalty protocol for the POS order flow."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class PointsSummary:
    """Customer balance and status."""

    customer_id: int
    name: str
    loyalty_points: int
    status: str  # "standard" | "silver" | "gold" | "platinum"


@dataclass(frozen=True)
class LedgerEntryInfo:
    """One ledger entry as seen by the order flow."""

    entry_id: int
    type: str
    points: int  # signed delta
    points_balance: int
    value: Decimal
    timestamp: datetime


@runtime_checkable
class LoyaltyBackend(Protocol):
    """
    Protocol used by the sales flow to earn and spend points.

    Configuration in settings.py:
        POINTLEDGER = {
            "LOYALTY_BACKEND": "pointledger.adapters.local.LocalLoyaltyBackend",
        }
    """

    def get_summary(self, customer_id: int) -> PointsSummary | None:
        """Balance and status, or None for unknown customers."""
        ...

    def award_for_purchase(
        self,
        customer_id: int,
        amount: Decimal,
        order_ref: str,
        category_id: str | None = None,
    ) -> LedgerEntryInfo | None:
        """
        Record a completed sale and award its points.

        Returns None when the sale earns nothing.
        """
        ...

    def redeem(self, customer_id: int, points: int, order_ref: str) -> LedgerEntryInfo:
        """Spend points as a discount; the entry value is the discount."""
        ...

    def reverse(self, customer_id: int, points: int, order_ref: str) -> LedgerEntryInfo | None:
        """Take back points awarded on a refunded sale."""
        ...
