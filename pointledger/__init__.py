"""
Django Pointledger - Loyalty points accrual and ledger.

Usage:
    from pointledger import LoyaltyService

    LoyaltyService.record_purchase(customer.pk, Decimal("120.00"), "sale:981")
    LoyaltyService.adjust_points(customer.pk, -50, "Damaged voucher", request.user)
    LoyaltyService.get_customer_transactions(customer.pk, type="earn", limit=20)

    # Validation gates
    from pointledger.gates import Gates
    Gates.ledger_continuity(customer.pk)
"""


def __getattr__(name):
    if name == "LoyaltyService":
        from pointledger.service import LoyaltyService

        return LoyaltyService
    if name == "Gates":
        from pointledger.gates import Gates

        return Gates
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["LoyaltyService", "Gates"]
__version__ = "0.1.0"
