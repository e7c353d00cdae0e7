"""Loyalty ledger entries."""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from pointledger.exceptions import LedgerImmutableError


class TransactionType(models.TextChoices):
    EARN = "earn", _("Earn")
    REDEEM = "redeem", _("Redeem")
    ADJUST = "adjust", _("Adjust")
    EXPIRE = "expire", _("Expire")


class ReferenceType(models.TextChoices):
    TRANSACTION = "transaction", _("Sale transaction")
    MANUAL = "manual", _("Manual")
    SYSTEM = "system", _("System")


class LedgerQuerySet(models.QuerySet):
    """Read-only queryset: bulk update/delete would rewrite history."""

    def update(self, **kwargs):
        raise LedgerImmutableError()

    def delete(self):
        raise LedgerImmutableError()


class LoyaltyTransaction(models.Model):
    """
    Immutable record of one balance change.

    points is the signed delta: positive for earn, negative for redeem and
    expire, either sign for adjust. points_balance is the customer balance
    right after this entry, so for consecutive entries of a customer:

        entry.points_balance == previous.points_balance + entry.points

    Entries are append-only. Corrections are new ADJUST entries.
    """

    customer = models.ForeignKey(
        "pointledger.Customer",
        on_delete=models.PROTECT,
        related_name="loyalty_transactions",
        verbose_name=_("customer"),
    )
    type = models.CharField(
        _("type"),
        max_length=10,
        choices=TransactionType.choices,
        db_index=True,
    )
    points = models.IntegerField(
        _("points"),
        help_text=_("Signed change to the balance"),
    )
    points_balance = models.IntegerField(
        _("balance after"),
        help_text=_("Customer balance after this entry"),
    )

    reference_type = models.CharField(
        _("reference type"),
        max_length=20,
        choices=ReferenceType.choices,
    )
    reference_id = models.CharField(
        _("reference id"),
        max_length=100,
        blank=True,
        help_text=_("Sale transaction id or acting user id"),
    )

    reason = models.CharField(_("reason"), max_length=255)
    value = models.DecimalField(
        _("value"),
        max_digits=12,
        decimal_places=2,
        default=Decimal("0"),
        help_text=_("Monetary value (e.g. redemption discount)"),
    )
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="loyalty_transactions",
        verbose_name=_("performed by"),
    )
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)
    timestamp = models.DateTimeField(
        _("timestamp"), default=timezone.now, editable=False, db_index=True
    )

    objects = LedgerQuerySet.as_manager()

    class Meta:
        verbose_name = _("loyalty transaction")
        verbose_name_plural = _("loyalty transactions")
        ordering = ["-timestamp", "-id"]
        indexes = [
            models.Index(fields=["customer", "-timestamp"], name="pointledger_cust_ts_idx"),
            models.Index(fields=["customer", "type", "-timestamp"], name="pointledger_cust_type_ts_idx"),
        ]

    def __str__(self):
        sign = "+" if self.points > 0 else ""
        return f"{sign}{self.points}pts ({self.type}) - {self.reason}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise LedgerImmutableError(entry_id=self.pk)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise LedgerImmutableError(entry_id=self.pk)
