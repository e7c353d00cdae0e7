"""JSON wire format for the loyalty endpoints.

The POS client speaks camelCase (pointsPerDollar, bonusType, startDate);
models and services use snake_case. Everything crossing the HTTP boundary
is converted here.
"""

from decimal import Decimal

from pointledger.exceptions import ValidationError

SETTINGS_WIRE = {
    "enabled": "enabled",
    "pointsPerDollar": "points_per_dollar",
    "redemptionRate": "redemption_rate",
    "minimumPoints": "minimum_points",
    "minimumRedemption": "minimum_redemption",
    "maximumRedemptionValue": "maximum_redemption_value",
    "expirationPeriod": "expiration_period",
    "statusTiers": "status_tiers",
    "statusMultipliers": "status_multipliers",
    "tiers": "tiers",
    "categoryBonuses": "category_bonuses",
    "promotions": "promotions",
}
SETTINGS_FIELDS = {field: key for key, field in SETTINGS_WIRE.items()}

TIER_WIRE = {"bonusType": "bonus_type", "bonusValue": "bonus_value"}
PROMOTION_WIRE = {"startDate": "start_date", "endDate": "end_date"}

# Echoed back by clients that PUT what they fetched
READ_ONLY_KEYS = {"_id", "id", "__v", "createdAt", "updatedAt", "updatedBy"}


def _rename(item, mapping: dict):
    if not isinstance(item, dict):
        return item
    return {mapping.get(key, key): value for key, value in item.items()}


def _number(value):
    if isinstance(value, Decimal):
        return float(value)
    return value


def settings_from_payload(payload) -> dict:
    """
    Convert a (partial) camelCase settings body to service fields.

    Raises:
        ValidationError: If the body is not an object or has unknown keys
    """
    if not isinstance(payload, dict):
        raise ValidationError(message="Settings body must be a JSON object")

    values = {}
    for key, value in payload.items():
        if key in READ_ONLY_KEYS:
            continue
        field = SETTINGS_WIRE.get(key)
        if field is None:
            raise ValidationError("UNKNOWN_SETTING", message=f"Unknown loyalty setting: {key}", field=key)
        if field == "tiers" and isinstance(value, list):
            value = [_rename(tier, TIER_WIRE) for tier in value]
        elif field == "promotions" and isinstance(value, list):
            value = [_rename(promo, PROMOTION_WIRE) for promo in value]
        values[field] = value
    return values


def settings_to_dict(program) -> dict:
    tier_keys = {v: k for k, v in TIER_WIRE.items()}
    promo_keys = {v: k for k, v in PROMOTION_WIRE.items()}
    return {
        "_id": program.pk,
        "enabled": program.enabled,
        "pointsPerDollar": _number(program.points_per_dollar),
        "redemptionRate": _number(program.redemption_rate),
        "minimumPoints": program.minimum_points,
        "minimumRedemption": program.minimum_redemption,
        "maximumRedemptionValue": _number(program.maximum_redemption_value),
        "expirationPeriod": program.expiration_period,
        "statusTiers": program.status_tiers,
        "statusMultipliers": program.status_multipliers,
        "tiers": [_rename(tier, tier_keys) for tier in program.tiers or []],
        "categoryBonuses": program.category_bonuses or {},
        "promotions": [_rename(promo, promo_keys) for promo in program.promotions or []],
        "updatedBy": program.updated_by_id,
        "createdAt": program.created_at.isoformat() if program.created_at else None,
        "updatedAt": program.updated_at.isoformat() if program.updated_at else None,
    }


def customer_summary(customer) -> dict:
    return {
        "_id": customer.pk,
        "firstName": customer.first_name,
        "lastName": customer.last_name,
        "loyaltyPoints": customer.loyalty_points,
    }


def transaction_to_dict(entry) -> dict:
    return {
        "_id": entry.pk,
        "customer": entry.customer_id,
        "type": entry.type,
        "points": entry.points,
        "pointsBalance": entry.points_balance,
        "reference": {"type": entry.reference_type, "id": entry.reference_id or None},
        "reason": entry.reason,
        "value": _number(entry.value),
        "performedBy": entry.performed_by_id,
        "metadata": entry.metadata,
        "timestamp": entry.timestamp.isoformat(),
    }
