"""Loyalty program settings (singleton row)."""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

SINGLETON_PK = 1

STATUS_LEVELS = ("standard", "silver", "gold", "platinum")


def default_status_tiers() -> dict:
    # Total spent required for each status
    return {"silver": 500, "gold": 1000, "platinum": 5000}


def default_status_multipliers() -> dict:
    return {"standard": 1, "silver": 1.1, "gold": 1.2, "platinum": 1.5}


def default_volume_tiers() -> list:
    # Bonus by purchase amount
    return [
        {"threshold": 100, "bonus_type": "fixed", "bonus_value": 50},
        {"threshold": 250, "bonus_type": "fixed", "bonus_value": 150},
        {"threshold": 500, "bonus_type": "percentage", "bonus_value": 25},
    ]


class LoyaltySettings(models.Model):
    """
    Loyalty program configuration.

    Exactly one row (pk=1). Created with defaults on first access by
    services.program.get_settings(); never instantiate directly elsewhere.

    JSON rule fields:
        tiers: [{"threshold", "bonus_type": fixed|percentage, "bonus_value"}]
        category_bonuses: {category_id: {"type": multiplier|fixed, "value"}}
        promotions: [{"id", "name", "active", "type": multiplier|fixed,
                      "value", "start_date", "end_date"}]
    """

    enabled = models.BooleanField(_("enabled"), default=True)

    points_per_dollar = models.DecimalField(
        _("points per dollar"), max_digits=10, decimal_places=4, default=Decimal("10")
    )
    redemption_rate = models.DecimalField(
        _("redemption rate"),
        max_digits=10,
        decimal_places=4,
        default=Decimal("0.01"),
        help_text=_("Monetary value of one point"),
    )
    minimum_points = models.PositiveIntegerField(
        _("minimum points"),
        default=1,
        help_text=_("Minimum points awarded for a purchase that earns anything"),
    )
    minimum_redemption = models.PositiveIntegerField(
        _("minimum redemption"),
        default=100,
        help_text=_("Minimum points per redemption"),
    )
    maximum_redemption_value = models.DecimalField(
        _("maximum redemption value"),
        max_digits=12,
        decimal_places=2,
        default=Decimal("100"),
        help_text=_("Cap on the value of a single redemption (0 = no cap)"),
    )
    expiration_period = models.PositiveIntegerField(
        _("expiration period (days)"),
        default=365,
        help_text=_("0 = points never expire"),
    )

    status_tiers = models.JSONField(_("status tiers"), default=default_status_tiers)
    status_multipliers = models.JSONField(
        _("status multipliers"), default=default_status_multipliers
    )
    tiers = models.JSONField(_("volume tiers"), default=default_volume_tiers, blank=True)
    category_bonuses = models.JSONField(_("category bonuses"), default=dict, blank=True)
    promotions = models.JSONField(_("promotions"), default=list, blank=True)

    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name=_("updated by"),
    )
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("loyalty settings")
        verbose_name_plural = _("loyalty settings")

    def __str__(self):
        state = "on" if self.enabled else "off"
        return f"Loyalty program ({state}): {self.points_per_dollar} pts/$"
