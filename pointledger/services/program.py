"""Loyalty settings store - lazy singleton with cached reads.

Reads are served from the Django cache and may be slightly stale after
an update on another process; balances never depend on that staleness.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, transaction

from pointledger.conf import ledger_settings
from pointledger.exceptions import StorageError
from pointledger.gates import DECIMAL_SETTINGS, Gates
from pointledger.models import LoyaltySettings
from pointledger.models.program import SINGLETON_PK
from pointledger.signals import settings_updated
from pointledger.utils import parse_moment, to_decimal

logger = logging.getLogger(__name__)

CACHE_KEY = "pointledger:settings"

# Dict settings merged key by key; every other field is replaced as a whole
MERGED_SETTINGS = ("status_tiers", "status_multipliers")


def get_settings() -> LoyaltySettings:
    """
    Return the loyalty settings, creating the defaults on first access.

    Raises:
        StorageError: If the settings row cannot be read or created
    """
    timeout = ledger_settings.SETTINGS_CACHE_TIMEOUT
    if timeout:
        cached = cache.get(CACHE_KEY)
        if cached is not None:
            return cached

    try:
        program, created = LoyaltySettings.objects.get_or_create(pk=SINGLETON_PK)
    except DatabaseError as exc:
        logger.exception("Loyalty settings could not be loaded")
        raise StorageError() from exc

    if created:
        logger.info("Loyalty settings created with defaults")
    if timeout:
        cache.set(CACHE_KEY, program, timeout)
    return program


def update_settings(partial: dict, updated_by=None) -> LoyaltySettings:
    """
    Merge partial settings into the singleton and persist.

    Args:
        partial: Fields to change (snake_case). Missing fields are preserved.
        updated_by: User making the change

    Returns:
        The updated LoyaltySettings

    Raises:
        ValidationError: If any value is unknown, negative or malformed
        StorageError: If the update cannot be persisted
    """
    Gates.settings_bounds(partial)
    values = _normalize(partial)

    try:
        with transaction.atomic():
            program, _ = LoyaltySettings.objects.select_for_update().get_or_create(
                pk=SINGLETON_PK
            )
            for field, value in values.items():
                if field in MERGED_SETTINGS:
                    value = {**(getattr(program, field) or {}), **value}
                setattr(program, field, value)
            program.updated_by = updated_by
            program.save()
            transaction.on_commit(invalidate_settings_cache)
    except DatabaseError as exc:
        logger.exception("Loyalty settings update failed")
        raise StorageError() from exc
    finally:
        invalidate_settings_cache()

    logger.info(
        "Loyalty settings updated by %s: %s",
        getattr(updated_by, "pk", None),
        ", ".join(sorted(values)) or "(no fields)",
    )
    settings_updated.send(sender=LoyaltySettings, settings=program, updated_by=updated_by)
    return program


def invalidate_settings_cache() -> None:
    """Drop the cached settings; the next read goes to the database."""
    cache.delete(CACHE_KEY)


def _normalize(partial: dict) -> dict:
    """Coerce validated values to their stored representation."""
    values = {}
    for field, value in partial.items():
        if field in DECIMAL_SETTINGS:
            value = to_decimal(value)
        elif field == "promotions":
            value = [_normalize_promotion(promo) for promo in value]
        elif field == "category_bonuses":
            value = {str(key): dict(bonus) for key, bonus in value.items()}
        elif field == "tiers":
            value = sorted((dict(tier) for tier in value), key=lambda t: float(t["threshold"]))
        values[field] = value
    return values


def _normalize_promotion(promo: dict) -> dict:
    promo = dict(promo)
    promo["id"] = str(promo["id"])
    promo.setdefault("active", True)
    start = parse_moment(promo.get("start_date"))
    end = parse_moment(promo.get("end_date"), end_of_day=True)
    promo["start_date"] = start.isoformat() if start else None
    promo["end_date"] = end.isoformat() if end else None
    return promo
