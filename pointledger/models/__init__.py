"""Pointledger models.

- Customer: holds the mutable loyalty_points balance
- LoyaltySettings: program configuration singleton
- LoyaltyTransaction: append-only ledger
"""

from pointledger.models.customer import Customer
from pointledger.models.program import LoyaltySettings, STATUS_LEVELS
from pointledger.models.ledger import (
    LoyaltyTransaction,
    ReferenceType,
    TransactionType,
)

__all__ = [
    "Customer",
    "LoyaltySettings",
    "STATUS_LEVELS",
    # Ledger
    "LoyaltyTransaction",
    "ReferenceType",
    "TransactionType",
]
