"""Customer model.

Customer.loyalty_points is the single mutable balance aggregate. It is
written only by pointledger.services.ledger, always together with a
LoyaltyTransaction row; the ledger can replay it (see services.history).

total_spent / purchase_count / last_purchase_at are purchase statistics
maintained by record_purchase(). The loyalty status tier is derived from
total_spent, never stored.
"""

import uuid as uuid_lib
from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class Customer(models.Model):
    """Registered POS customer."""

    code = models.CharField(
        _("code"),
        max_length=50,
        unique=True,
        help_text=_("Unique customer code (e.g. CUST-001)"),
    )
    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)

    first_name = models.CharField(_("first name"), max_length=50)
    last_name = models.CharField(_("last name"), max_length=50, blank=True)
    email = models.EmailField(_("email"), blank=True, db_index=True)
    phone = models.CharField(_("phone"), max_length=20, blank=True, db_index=True)

    # Loyalty balance
    loyalty_points = models.IntegerField(
        _("loyalty points"),
        default=0,
        help_text=_("Current points balance (never negative)"),
    )

    # Purchase statistics
    total_spent = models.DecimalField(
        _("total spent"),
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    purchase_count = models.PositiveIntegerField(_("purchases"), default=0)
    last_purchase_at = models.DateTimeField(_("last purchase"), null=True, blank=True)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("customer")
        verbose_name_plural = _("customers")
        ordering = ["first_name", "last_name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(loyalty_points__gte=0),
                name="pointledger_customer_points_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"

    @property
    def name(self) -> str:
        """Full name (first + last)."""
        return f"{self.first_name} {self.last_name}".strip()

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.lower().strip()
        super().save(*args, **kwargs)
