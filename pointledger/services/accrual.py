"""Accrual engine - points earned for a purchase.

Pure functions: no database access, no side effects. The same settings,
inputs and `now` always produce the same result, so historical awards can
be recomputed for audit. Arithmetic is Decimal end to end; only the base
points and the final result are floored.
"""

from datetime import datetime
from decimal import ROUND_DOWN, ROUND_FLOOR, Decimal

from django.utils import timezone

from pointledger.utils import parse_moment, to_decimal

ONE = Decimal("1")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

# Highest first
_STATUS_ORDER = ("platinum", "gold", "silver")


def compute_earned_points(
    settings,
    purchase_amount,
    status: str = "standard",
    category_id=None,
    promotions: list[dict] | None = None,
    now: datetime | None = None,
) -> int:
    """
    Points earned for a purchase.

    Order of application:
        1. base = floor(amount * points_per_dollar)
        2. status multiplier
        3. category bonus (multiplier or fixed)
        4. active promotions, in list order
        5. volume tier bonus (highest threshold <= amount)
        6. floor, never below 0

    Args:
        settings: LoyaltySettings (or any object with the same attributes)
        purchase_amount: Purchase total
        status: Customer status (standard, silver, gold, platinum)
        category_id: Category of the purchase, for category bonuses
        promotions: Promotions to consider; defaults to settings.promotions
        now: Evaluation time for promotion windows; defaults to now

    Returns:
        Points to award (int >= 0)
    """
    if not settings.enabled:
        return 0

    amount = to_decimal(purchase_amount)
    if amount is None or amount <= 0:
        return 0

    rate = to_decimal(settings.points_per_dollar) or Decimal("0")
    points = (amount * rate).to_integral_value(rounding=ROUND_FLOOR)

    multipliers = settings.status_multipliers or {}
    factor = to_decimal(multipliers.get(status, 1))
    points *= ONE if factor is None else factor

    if category_id is not None:
        bonus = (settings.category_bonuses or {}).get(str(category_id))
        if bonus:
            points = _apply_bonus(points, bonus.get("type"), bonus.get("value"))

    candidates = settings.promotions if promotions is None else promotions
    for promo in active_promotions(candidates, now):
        points = _apply_bonus(points, promo.get("type"), promo.get("value"))

    tier = volume_tier(settings.tiers, amount)
    if tier:
        value = to_decimal(tier.get("bonus_value")) or Decimal("0")
        if tier.get("bonus_type") == "percentage":
            points *= ONE + value / HUNDRED
        elif tier.get("bonus_type") == "fixed":
            points += value

    result = max(int(points.to_integral_value(rounding=ROUND_FLOOR)), 0)
    return max(result, settings.minimum_points or 0)


def active_promotions(promotions: list[dict] | None, now: datetime | None = None) -> list[dict]:
    """Promotions that are active and whose window contains `now`, in list order."""
    now = now or timezone.now()
    active = []
    for promo in promotions or []:
        if not promo.get("active", True):
            continue
        start = parse_moment(promo.get("start_date"))
        end = parse_moment(promo.get("end_date"), end_of_day=True)
        if start and now < start:
            continue
        if end and now > end:
            continue
        active.append(promo)
    return active


def volume_tier(tiers: list[dict] | None, purchase_amount) -> dict | None:
    """Tier with the highest threshold not exceeding the purchase amount."""
    amount = to_decimal(purchase_amount)
    best = None
    for tier in tiers or []:
        threshold = to_decimal(tier.get("threshold"))
        if threshold is None or threshold > amount:
            continue
        if best is None or threshold > to_decimal(best["threshold"]):
            best = tier
    return best


def determine_status(settings, total_spent) -> str:
    """Status level for a customer's lifetime spend."""
    spent = to_decimal(total_spent) or Decimal("0")
    thresholds = settings.status_tiers or {}
    for level in _STATUS_ORDER:
        threshold = to_decimal(thresholds.get(level))
        if threshold is not None and spent >= threshold:
            return level
    return "standard"


def calculate_redemption_value(settings, points: int) -> Decimal:
    """
    Monetary value of redeeming `points`.

    Zero below minimum_redemption; capped at maximum_redemption_value
    (a cap of 0 means no cap). Rounded down to cents.
    """
    if points <= 0 or points < (settings.minimum_redemption or 0):
        return Decimal("0.00")

    rate = to_decimal(settings.redemption_rate) or Decimal("0")
    value = Decimal(points) * rate

    cap = to_decimal(settings.maximum_redemption_value) or Decimal("0")
    if cap > 0 and value > cap:
        value = cap

    return value.quantize(CENT, rounding=ROUND_DOWN)


def _apply_bonus(points: Decimal, bonus_type: str | None, value) -> Decimal:
    amount = to_decimal(value)
    if amount is None:
        return points
    if bonus_type == "multiplier":
        return points * amount
    if bonus_type == "fixed":
        return points + amount
    return points
