"""
Pointledger Gates - Validation rules.

G1: SettingsBounds - Loyalty settings are known fields with non-negative values
G2: PointsDelta - A manual change is a non-zero integer with a reason
G3: SufficientBalance - A deduction never takes the balance below zero
G4: LedgerContinuity - Replaying the ledger reproduces the stored balance
"""

from dataclasses import dataclass

from pointledger.exceptions import (
    InsufficientBalanceError,
    LedgerError,
    ValidationError,
)
from pointledger.models.program import STATUS_LEVELS, LoyaltySettings
from pointledger.utils import column_error, parse_moment, to_decimal

DECIMAL_SETTINGS = ("points_per_dollar", "redemption_rate", "maximum_redemption_value")
INTEGER_SETTINGS = ("minimum_points", "minimum_redemption", "expiration_period")
RULE_SETTINGS = (
    "status_tiers",
    "status_multipliers",
    "tiers",
    "category_bonuses",
    "promotions",
)
SETTING_FIELDS = ("enabled",) + DECIMAL_SETTINGS + INTEGER_SETTINGS + RULE_SETTINGS

TIER_BONUS_TYPES = ("fixed", "percentage")
BONUS_TYPES = ("multiplier", "fixed")


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


def _invalid(field: str, message: str) -> ValidationError:
    return ValidationError(
        "INVALID_SETTING",
        message=f"{field}: {message}",
        gate="G1_SettingsBounds",
        field=field,
    )


def _non_negative_number(field: str, value):
    number = to_decimal(value)
    if number is None or not number.is_finite():
        raise _invalid(field, "must be a number")
    if number < 0:
        raise _invalid(field, "must be greater than or equal to 0")
    return number


def _fits_column(field: str, number):
    error = column_error(LoyaltySettings, field, number)
    if error:
        raise _invalid(field, error)
    return number


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Pointledger validation gates."""

    # =========================================================================
    # G1: Settings Bounds
    # =========================================================================

    @classmethod
    def settings_bounds(cls, values: dict) -> GateResult:
        """
        G1: Every provided setting is known and within bounds.

        Args:
            values: Partial settings (snake_case keys)

        Raises:
            ValidationError: On unknown field, negative number or malformed rule
        """
        for field, value in values.items():
            if field not in SETTING_FIELDS:
                raise ValidationError(
                    "UNKNOWN_SETTING",
                    message=f"Unknown loyalty setting: {field}",
                    gate="G1_SettingsBounds",
                    field=field,
                )

            if field == "enabled":
                if not isinstance(value, bool):
                    raise _invalid(field, "must be true or false")
            elif field in DECIMAL_SETTINGS:
                _fits_column(field, _non_negative_number(field, value))
            elif field in INTEGER_SETTINGS:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise _invalid(field, "must be an integer")
                if value < 0:
                    raise _invalid(field, "must be greater than or equal to 0")
            else:
                getattr(cls, f"_check_{field}")(value)

        return GateResult(True, "G1_SettingsBounds")

    @classmethod
    def _check_status_tiers(cls, value):
        if not isinstance(value, dict):
            raise _invalid("status_tiers", "must be an object")
        for level, threshold in value.items():
            if level not in STATUS_LEVELS or level == "standard":
                raise _invalid("status_tiers", f"unknown status '{level}'")
            _non_negative_number(f"status_tiers.{level}", threshold)

    @classmethod
    def _check_status_multipliers(cls, value):
        if not isinstance(value, dict):
            raise _invalid("status_multipliers", "must be an object")
        for level, factor in value.items():
            if level not in STATUS_LEVELS:
                raise _invalid("status_multipliers", f"unknown status '{level}'")
            _non_negative_number(f"status_multipliers.{level}", factor)

    @classmethod
    def _check_tiers(cls, value):
        if not isinstance(value, list):
            raise _invalid("tiers", "must be a list")
        for i, tier in enumerate(value):
            if not isinstance(tier, dict):
                raise _invalid(f"tiers[{i}]", "must be an object")
            for key in ("threshold", "bonus_type", "bonus_value"):
                if tier.get(key) is None:
                    raise _invalid(f"tiers[{i}].{key}", "is required")
            if tier["bonus_type"] not in TIER_BONUS_TYPES:
                raise _invalid(f"tiers[{i}].bonus_type", "must be fixed or percentage")
            _non_negative_number(f"tiers[{i}].threshold", tier["threshold"])
            _non_negative_number(f"tiers[{i}].bonus_value", tier["bonus_value"])

    @classmethod
    def _check_category_bonuses(cls, value):
        if not isinstance(value, dict):
            raise _invalid("category_bonuses", "must be an object")
        for category_id, bonus in value.items():
            field = f"category_bonuses.{category_id}"
            if not isinstance(bonus, dict):
                raise _invalid(field, "must be an object")
            if bonus.get("type") not in BONUS_TYPES:
                raise _invalid(f"{field}.type", "must be multiplier or fixed")
            _non_negative_number(f"{field}.value", bonus.get("value"))

    @classmethod
    def _check_promotions(cls, value):
        if not isinstance(value, list):
            raise _invalid("promotions", "must be a list")
        seen = set()
        for i, promo in enumerate(value):
            field = f"promotions[{i}]"
            if not isinstance(promo, dict):
                raise _invalid(field, "must be an object")
            for key in ("id", "name"):
                if not promo.get(key):
                    raise _invalid(f"{field}.{key}", "is required")
            if promo["id"] in seen:
                raise _invalid(f"{field}.id", f"duplicate promotion id '{promo['id']}'")
            seen.add(promo["id"])
            if promo.get("type") not in BONUS_TYPES:
                raise _invalid(f"{field}.type", "must be multiplier or fixed")
            _non_negative_number(f"{field}.value", promo.get("value"))
            if "active" in promo and not isinstance(promo["active"], bool):
                raise _invalid(f"{field}.active", "must be true or false")

            start = promo.get("start_date")
            end = promo.get("end_date")
            start_at = parse_moment(start)
            end_at = parse_moment(end, end_of_day=True)
            if start not in (None, "") and start_at is None:
                raise _invalid(f"{field}.start_date", "is not a valid date")
            if end not in (None, "") and end_at is None:
                raise _invalid(f"{field}.end_date", "is not a valid date")
            if start_at and end_at and start_at > end_at:
                raise _invalid(field, "start_date is after end_date")

    @classmethod
    def check_settings_bounds(cls, values: dict) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.settings_bounds(values)
            return True
        except ValidationError:
            return False

    # =========================================================================
    # G2: Points Delta
    # =========================================================================

    @classmethod
    def points_delta(cls, points, reason: str, allow_negative: bool = True) -> GateResult:
        """
        G2: points is a non-zero integer and reason is not blank.

        Raises:
            ValidationError: If either constraint fails
        """
        if isinstance(points, bool) or not isinstance(points, int) or points == 0:
            raise ValidationError("INVALID_POINTS", gate="G2_PointsDelta", points=points)
        if points < 0 and not allow_negative:
            raise ValidationError(
                "INVALID_POINTS",
                message="Points must be positive",
                gate="G2_PointsDelta",
                points=points,
            )
        if not isinstance(reason, str) or not reason.strip():
            raise ValidationError("REASON_REQUIRED", gate="G2_PointsDelta")

        return GateResult(True, "G2_PointsDelta")

    # =========================================================================
    # G3: Sufficient Balance
    # =========================================================================

    @classmethod
    def sufficient_balance(cls, balance: int, delta: int) -> GateResult:
        """
        G3: balance + delta >= 0.

        Raises:
            InsufficientBalanceError: If the deduction exceeds the balance
        """
        if delta < 0 and -delta > balance:
            raise InsufficientBalanceError(
                gate="G3_SufficientBalance",
                available=balance,
                requested=-delta,
            )
        return GateResult(True, "G3_SufficientBalance")

    @classmethod
    def check_sufficient_balance(cls, balance: int, delta: int) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.sufficient_balance(balance, delta)
            return True
        except InsufficientBalanceError:
            return False

    # =========================================================================
    # G4: Ledger Continuity
    # =========================================================================

    @classmethod
    def ledger_continuity(cls, customer_id: int) -> GateResult:
        """
        G4: Replaying the customer's ledger in timestamp order reproduces
        every balance snapshot and the stored balance.

        Raises:
            NotFoundError: If customer not found
            LedgerError: If the ledger and the balance disagree
        """
        from pointledger.services import history

        audit = history.audit_ledger(customer_id)
        if not audit.consistent:
            raise LedgerError(
                "LEDGER_INCONSISTENT",
                message="Ledger does not reproduce the stored balance.",
                gate="G4_LedgerContinuity",
                customer_id=customer_id,
                stored_balance=audit.stored_balance,
                replayed_balance=audit.replayed_balance,
                first_break_id=audit.first_break_id,
            )
        return GateResult(True, "G4_LedgerContinuity")
