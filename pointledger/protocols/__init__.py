"""Pointledger protocols."""

from pointledger.protocols.loyalty import (
    LedgerEntryInfo,
    LoyaltyBackend,
    PointsSummary,
)

__all__ = [
    "LoyaltyBackend",
    "LedgerEntryInfo",
    "PointsSummary",
]
