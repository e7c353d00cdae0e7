# Generated migration for Customer, LoyaltySettings and LoyaltyTransaction

import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import pointledger.models.program


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        help_text="Unique customer code (e.g. CUST-001)",
                        max_length=50,
                        unique=True,
                        verbose_name="code",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("first_name", models.CharField(max_length=50, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=50, verbose_name="last name")),
                ("email", models.EmailField(blank=True, db_index=True, max_length=254, verbose_name="email")),
                ("phone", models.CharField(blank=True, db_index=True, max_length=20, verbose_name="phone")),
                (
                    "loyalty_points",
                    models.IntegerField(
                        default=0,
                        help_text="Current points balance (never negative)",
                        verbose_name="loyalty points",
                    ),
                ),
                (
                    "total_spent",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=14,
                        verbose_name="total spent",
                    ),
                ),
                ("purchase_count", models.PositiveIntegerField(default=0, verbose_name="purchases")),
                ("last_purchase_at", models.DateTimeField(blank=True, null=True, verbose_name="last purchase")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "customer",
                "verbose_name_plural": "customers",
                "ordering": ["first_name", "last_name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("loyalty_points__gte", 0)),
                        name="pointledger_customer_points_non_negative",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="LoyaltySettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("enabled", models.BooleanField(default=True, verbose_name="enabled")),
                (
                    "points_per_dollar",
                    models.DecimalField(
                        decimal_places=4,
                        default=Decimal("10"),
                        max_digits=10,
                        verbose_name="points per dollar",
                    ),
                ),
                (
                    "redemption_rate",
                    models.DecimalField(
                        decimal_places=4,
                        default=Decimal("0.01"),
                        help_text="Monetary value of one point",
                        max_digits=10,
                        verbose_name="redemption rate",
                    ),
                ),
                (
                    "minimum_points",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Minimum points awarded for a purchase that earns anything",
                        verbose_name="minimum points",
                    ),
                ),
                (
                    "minimum_redemption",
                    models.PositiveIntegerField(
                        default=100,
                        help_text="Minimum points per redemption",
                        verbose_name="minimum redemption",
                    ),
                ),
                (
                    "maximum_redemption_value",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("100"),
                        help_text="Cap on the value of a single redemption (0 = no cap)",
                        max_digits=12,
                        verbose_name="maximum redemption value",
                    ),
                ),
                (
                    "expiration_period",
                    models.PositiveIntegerField(
                        default=365,
                        help_text="0 = points never expire",
                        verbose_name="expiration period (days)",
                    ),
                ),
                (
                    "status_tiers",
                    models.JSONField(
                        default=pointledger.models.program.default_status_tiers,
                        verbose_name="status tiers",
                    ),
                ),
                (
                    "status_multipliers",
                    models.JSONField(
                        default=pointledger.models.program.default_status_multipliers,
                        verbose_name="status multipliers",
                    ),
                ),
                (
                    "tiers",
                    models.JSONField(
                        blank=True,
                        default=pointledger.models.program.default_volume_tiers,
                        verbose_name="volume tiers",
                    ),
                ),
                ("category_bonuses", models.JSONField(blank=True, default=dict, verbose_name="category bonuses")),
                ("promotions", models.JSONField(blank=True, default=list, verbose_name="promotions")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="updated by",
                    ),
                ),
            ],
            options={
                "verbose_name": "loyalty settings",
                "verbose_name_plural": "loyalty settings",
            },
        ),
        migrations.CreateModel(
            name="LoyaltyTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("earn", "Earn"),
                            ("redeem", "Redeem"),
                            ("adjust", "Adjust"),
                            ("expire", "Expire"),
                        ],
                        db_index=True,
                        max_length=10,
                        verbose_name="type",
                    ),
                ),
                ("points", models.IntegerField(help_text="Signed change to the balance", verbose_name="points")),
                (
                    "points_balance",
                    models.IntegerField(help_text="Customer balance after this entry", verbose_name="balance after"),
                ),
                (
                    "reference_type",
                    models.CharField(
                        choices=[
                            ("transaction", "Sale transaction"),
                            ("manual", "Manual"),
                            ("system", "System"),
                        ],
                        max_length=20,
                        verbose_name="reference type",
                    ),
                ),
                (
                    "reference_id",
                    models.CharField(
                        blank=True,
                        help_text="Sale transaction id or acting user id",
                        max_length=100,
                        verbose_name="reference id",
                    ),
                ),
                ("reason", models.CharField(max_length=255, verbose_name="reason")),
                (
                    "value",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        help_text="Monetary value (e.g. redemption discount)",
                        max_digits=12,
                        verbose_name="value",
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                (
                    "timestamp",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        editable=False,
                        verbose_name="timestamp",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="loyalty_transactions",
                        to="pointledger.customer",
                        verbose_name="customer",
                    ),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="loyalty_transactions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="performed by",
                    ),
                ),
            ],
            options={
                "verbose_name": "loyalty transaction",
                "verbose_name_plural": "loyalty transactions",
                "ordering": ["-timestamp", "-id"],
                "indexes": [
                    models.Index(fields=["customer", "-timestamp"], name="pointledger_cust_ts_idx"),
                    models.Index(fields=["customer", "type", "-timestamp"], name="pointledger_cust_type_ts_idx"),
                ],
            },
        ),
    ]
