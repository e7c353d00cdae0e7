"""
Pointledger public API.

SETTINGS:
    LoyaltyService.get_settings()              - Program settings (lazy singleton)
    LoyaltyService.update_settings(partial, u) - Merge and persist settings

ACCRUAL:
    LoyaltyService.compute_earned_points(...)  - Points for a purchase (pure)
    LoyaltyService.customer_status(id)         - standard/silver/gold/platinum

LEDGER:
    LoyaltyService.adjust_points(...)          - Manual adjustment
    LoyaltyService.record_earn/record_redeem/expire_points(...)
    LoyaltyService.record_purchase(...)        - Stats + accrual + earn

HISTORY:
    LoyaltyService.get_customer_transactions(...)
    LoyaltyService.count_transactions(...)
"""

from decimal import Decimal

from pointledger.models import LoyaltySettings, LoyaltyTransaction
from pointledger.services import accrual, history, ledger, program
from pointledger.services.ledger import AdjustmentResult


class LoyaltyService:
    """
    Pointledger public API.

    Uses @classmethod for extensibility: subclass and override a single
    operation without touching the service modules.
    """

    # ======================================================================
    # SETTINGS
    # ======================================================================

    @classmethod
    def get_settings(cls) -> LoyaltySettings:
        return program.get_settings()

    @classmethod
    def update_settings(cls, partial: dict, updated_by=None) -> LoyaltySettings:
        return program.update_settings(partial, updated_by)

    # ======================================================================
    # ACCRUAL
    # ======================================================================

    @classmethod
    def compute_earned_points(
        cls,
        purchase_amount,
        status: str = "standard",
        category_id=None,
        promotions: list[dict] | None = None,
        now=None,
    ) -> int:
        """Points for a purchase under the current settings."""
        return accrual.compute_earned_points(
            program.get_settings(),
            purchase_amount,
            status,
            category_id=category_id,
            promotions=promotions,
            now=now,
        )

    @classmethod
    def customer_status(cls, customer_id) -> str:
        customer = history.get_customer(customer_id)
        return accrual.determine_status(program.get_settings(), customer.total_spent)

    @classmethod
    def redemption_value(cls, points: int) -> Decimal:
        return accrual.calculate_redemption_value(program.get_settings(), points)

    # ======================================================================
    # LEDGER
    # ======================================================================

    @classmethod
    def get_balance(cls, customer_id) -> int:
        return history.get_customer(customer_id).loyalty_points

    @classmethod
    def adjust_points(cls, customer_id, points_delta: int, reason: str, performed_by) -> AdjustmentResult:
        return ledger.adjust_points(customer_id, points_delta, reason, performed_by)

    @classmethod
    def record_earn(cls, customer_id, points: int, source_transaction_id, **kwargs) -> LoyaltyTransaction:
        return ledger.record_earn(customer_id, points, source_transaction_id, **kwargs)

    @classmethod
    def record_redeem(cls, customer_id, points: int, value, source_transaction_id, **kwargs) -> LoyaltyTransaction:
        return ledger.record_redeem(customer_id, points, value, source_transaction_id, **kwargs)

    @classmethod
    def expire_points(cls, customer_id, points: int, reason: str = "Points expired") -> LoyaltyTransaction:
        return ledger.expire_points(customer_id, points, reason)

    @classmethod
    def record_purchase(cls, customer_id, amount, source_transaction_id, **kwargs) -> LoyaltyTransaction | None:
        return ledger.record_purchase(customer_id, amount, source_transaction_id, **kwargs)

    @classmethod
    def redeem_for_discount(cls, customer_id, points: int, source_transaction_id, **kwargs) -> LoyaltyTransaction:
        return ledger.redeem_for_discount(customer_id, points, source_transaction_id, **kwargs)

    @classmethod
    def reverse_earn(cls, customer_id, points: int, source_transaction_id, **kwargs) -> LoyaltyTransaction | None:
        return ledger.reverse_earn(customer_id, points, source_transaction_id, **kwargs)

    # ======================================================================
    # HISTORY
    # ======================================================================

    @classmethod
    def get_customer_transactions(cls, customer_id, **filters) -> list[LoyaltyTransaction]:
        return history.get_customer_transactions(customer_id, **filters)

    @classmethod
    def count_transactions(cls, customer_id, **filters) -> int:
        return history.count_transactions(customer_id, **filters)

    @classmethod
    def audit_ledger(cls, customer_id) -> history.LedgerAudit:
        return history.audit_ledger(customer_id)
