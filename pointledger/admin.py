"""Pointledger admin.

Balances and ledger entries are read-only here: every change goes through
pointledger.services.ledger so the ledger stays complete.
"""

from django import forms
from django.contrib import admin
from django.utils.html import format_html

from pointledger.exceptions import ValidationError as LedgerValidationError
from pointledger.gates import SETTING_FIELDS, Gates
from pointledger.models import Customer, LoyaltySettings, LoyaltyTransaction
from pointledger.services import program


# ===========================================
# Ledger (read-only)
# ===========================================


class LoyaltyTransactionInline(admin.TabularInline):
    model = LoyaltyTransaction
    extra = 0
    fields = ["timestamp", "type", "points", "points_balance", "reason", "performed_by"]
    readonly_fields = fields
    ordering = ["-timestamp", "-id"]
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


def points_badge(points: int):
    if points > 0:
        return format_html('<span style="color:green">+{}</span>', points)
    return format_html('<span style="color:red">{}</span>', points)


@admin.register(LoyaltyTransaction)
class LoyaltyTransactionAdmin(admin.ModelAdmin):
    list_display = [
        "timestamp",
        "customer",
        "type",
        "points_display",
        "points_balance",
        "reason",
        "performed_by",
    ]
    list_filter = ["type", "reference_type"]
    search_fields = ["customer__code", "customer__first_name", "reason", "reference_id"]
    date_hierarchy = "timestamp"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description="Points")
    def points_display(self, obj):
        return points_badge(obj.points)


# ===========================================
# Customer Admin
# ===========================================


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "name",
        "phone",
        "loyalty_points",
        "total_spent",
        "purchase_count",
        "is_active",
    ]
    list_filter = ["is_active"]
    search_fields = ["code", "first_name", "last_name", "phone", "email"]
    readonly_fields = [
        "uuid",
        "loyalty_points",
        "total_spent",
        "purchase_count",
        "last_purchase_at",
        "created_at",
        "updated_at",
    ]
    inlines = [LoyaltyTransactionInline]


# ===========================================
# Loyalty Settings Admin (singleton)
# ===========================================


class LoyaltySettingsForm(forms.ModelForm):
    class Meta:
        model = LoyaltySettings
        exclude = ["updated_by"]

    def clean(self):
        cleaned = super().clean()
        changed = {
            field: cleaned[field]
            for field in self.changed_data
            if field in cleaned
        }
        try:
            Gates.settings_bounds(changed)
        except LedgerValidationError as exc:
            raise forms.ValidationError(exc.message)
        return cleaned

    def save_settings(self, user) -> LoyaltySettings:
        """Persist the changed fields through the settings service."""
        changed = {
            field: self.cleaned_data[field]
            for field in self.changed_data
            if field in SETTING_FIELDS
        }
        return program.update_settings(changed, updated_by=user)


@admin.register(LoyaltySettings)
class LoyaltySettingsAdmin(admin.ModelAdmin):
    form = LoyaltySettingsForm
    list_display = ["__str__", "enabled", "points_per_dollar", "redemption_rate", "updated_at", "updated_by"]
    readonly_fields = ["updated_by", "created_at", "updated_at"]

    def has_add_permission(self, request):
        return not LoyaltySettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        obj.pk = form.save_settings(request.user).pk
        obj.refresh_from_db()
