"""
Pointledger Admin with Unfold theme.

To use, add 'unfold' before 'django.contrib.admin' and
'pointledger.contrib.admin_unfold' after 'pointledger' in INSTALLED_APPS.

The admins will automatically unregister the basic admins and register
the Unfold versions.
"""

from django.contrib import admin
from django.utils.html import format_html
from unfold.decorators import display

from pointledger.admin import LoyaltySettingsForm
from pointledger.contrib.admin_unfold.base import BaseModelAdmin, BaseTabularInline
from pointledger.models import Customer, LoyaltySettings, LoyaltyTransaction


def _unfold_badge(text, color="base"):
    """Create Unfold badge with colored background."""
    base_classes = (
        "inline-block font-semibold h-6 leading-6 px-2 "
        "rounded-default whitespace-nowrap text-xs uppercase"
    )

    color_classes = {
        "base": "bg-base-100 text-base-700 dark:bg-base-500/20 dark:text-base-200",
        "red": "bg-red-100 text-red-700 dark:bg-red-500/20 dark:text-red-400",
        "green": "bg-green-100 text-green-700 dark:bg-green-500/20 dark:text-green-400",
        "yellow": "bg-yellow-100 text-yellow-700 dark:bg-yellow-500/20 dark:text-yellow-400",
        "blue": "bg-blue-100 text-blue-700 dark:bg-blue-500/20 dark:text-blue-400",
    }

    classes = f"{base_classes} {color_classes.get(color, color_classes['base'])}"
    return format_html('<span class="{}">{}</span>', classes, text)


TYPE_COLORS = {
    "earn": "green",
    "redeem": "blue",
    "adjust": "yellow",
    "expire": "red",
}


# Unregister basic admins
for model in [Customer, LoyaltySettings, LoyaltyTransaction]:
    try:
        admin.site.unregister(model)
    except admin.sites.NotRegistered:
        pass


# =============================================================================
# LEDGER ADMIN
# =============================================================================


class _ReadOnlyMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class LoyaltyTransactionInline(_ReadOnlyMixin, BaseTabularInline):
    model = LoyaltyTransaction
    extra = 0
    fields = ["timestamp", "type", "points", "points_balance", "reason"]
    readonly_fields = fields
    ordering = ["-timestamp", "-id"]


@admin.register(LoyaltyTransaction)
class LoyaltyTransactionAdmin(_ReadOnlyMixin, BaseModelAdmin):
    list_display = [
        "timestamp",
        "customer",
        "type_badge",
        "points_display",
        "points_balance",
        "reason",
    ]
    list_filter = ["type", "reference_type"]
    search_fields = ["customer__code", "customer__first_name", "reason", "reference_id"]
    date_hierarchy = "timestamp"

    @display(description="Type")
    def type_badge(self, obj):
        return _unfold_badge(obj.get_type_display(), TYPE_COLORS.get(obj.type, "base"))

    @display(description="Points")
    def points_display(self, obj):
        color = "green" if obj.points > 0 else "red"
        return _unfold_badge(f"{obj.points:+d}", color)


# =============================================================================
# CUSTOMER ADMIN
# =============================================================================


@admin.register(Customer)
class CustomerAdmin(BaseModelAdmin):
    list_display = [
        "code",
        "name",
        "phone",
        "loyalty_points",
        "total_spent",
        "is_active_badge",
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

    fieldsets = [
        ("Identification", {"fields": ["code", "uuid", "first_name", "last_name"]}),
        ("Contact", {"fields": ["email", "phone"]}),
        (
            "Loyalty",
            {"fields": ["loyalty_points", "total_spent", "purchase_count", "last_purchase_at"]},
        ),
        (
            "System",
            {
                "fields": ["is_active", "metadata", "created_at", "updated_at"],
                "classes": ["collapse"],
            },
        ),
    ]

    @display(description="Active", boolean=True)
    def is_active_badge(self, obj):
        return obj.is_active


# =============================================================================
# LOYALTY SETTINGS ADMIN
# =============================================================================


@admin.register(LoyaltySettings)
class LoyaltySettingsAdmin(BaseModelAdmin):
    form = LoyaltySettingsForm
    list_display = ["__str__", "enabled_badge", "points_per_dollar", "redemption_rate", "updated_at"]
    readonly_fields = ["updated_by", "created_at", "updated_at"]

    fieldsets = [
        ("Program", {"fields": ["enabled", "points_per_dollar", "minimum_points", "expiration_period"]}),
        (
            "Redemption",
            {"fields": ["redemption_rate", "minimum_redemption", "maximum_redemption_value"]},
        ),
        (
            "Rules",
            {"fields": ["status_tiers", "status_multipliers", "tiers", "category_bonuses", "promotions"]},
        ),
        ("System", {"fields": ["updated_by", "created_at", "updated_at"], "classes": ["collapse"]}),
    ]

    @display(description="Enabled", boolean=True)
    def enabled_badge(self, obj):
        return obj.enabled

    def has_add_permission(self, request):
        return not LoyaltySettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        obj.pk = form.save_settings(request.user).pk
        obj.refresh_from_db()
