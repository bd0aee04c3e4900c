# Generated migration for offers, device claims and usage history

import decimal
import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import apps.offers.models


class Migration(migrations.Migration):
    """Create Offer, OfferClaim and OfferUsage."""

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Offer",
            fields=[
                (
                    "id",
                    models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False),
                ),
                ("title", models.CharField(max_length=200)),
                ("subtitle", models.CharField(blank=True, max_length=100)),
                ("description", models.TextField(max_length=1000)),
                ("image_url", models.URLField(blank=True, max_length=500)),
                ("banner_color", models.CharField(default="#E91E63", max_length=7)),
                ("terms_and_conditions", models.JSONField(blank=True, default=list)),
                (
                    "offer_type",
                    models.CharField(
                        choices=[
                            ("percentage", "Percentage"),
                            ("fixed-amount", "Fixed Amount"),
                            ("buy-one-get-one", "Buy One Get One"),
                            ("free-delivery", "Free Delivery"),
                            ("combo", "Combo"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "value",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Percent for percentage offers, currency amount for fixed-amount offers",
                        max_digits=10,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("coupon_code", models.CharField(blank=True, max_length=50, null=True, unique=True)),
                (
                    "min_order_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "max_discount_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Caps percentage discounts",
                        max_digits=10,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "usage_limit",
                    models.PositiveIntegerField(blank=True, help_text="Global cap (null = unlimited)", null=True),
                ),
                ("usage_count", models.PositiveIntegerField(default=0, editable=False)),
                (
                    "user_usage_limit",
                    models.PositiveIntegerField(
                        default=1, validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                ("is_one_time_per_device", models.BooleanField(default=False)),
                ("platforms", models.JSONField(blank=True, default=apps.offers.models.default_platforms)),
                ("delivery_types", models.JSONField(blank=True, default=list)),
                ("applied_to_items", models.JSONField(blank=True, default=list)),
                ("applied_to_categories", models.JSONField(blank=True, default=list)),
                ("excluded_items", models.JSONField(blank=True, default=list)),
                ("combo_items", models.JSONField(blank=True, default=list)),
                (
                    "combo_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=10,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("start_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("end_date", models.DateTimeField()),
                (
                    "priority",
                    models.PositiveSmallIntegerField(
                        default=1,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(10),
                        ],
                    ),
                ),
                ("is_active", models.BooleanField(default=True, help_text="Admin kill-switch")),
                ("is_featured", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "offers_offer",
                "ordering": ("-priority", "-is_featured", "-created_at", "id"),
                "indexes": [
                    models.Index(fields=["is_active", "start_date", "end_date"], name="idx_offer_window"),
                    models.Index(fields=["is_featured", "-priority"], name="idx_offer_featured"),
                    models.Index(fields=["offer_type"], name="idx_offer_type"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("end_date__gt", models.F("start_date"))),
                        name="offer_end_after_start",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("usage_limit__isnull", True),
                            ("usage_count__lte", models.F("usage_limit")),
                            _connector="OR",
                        ),
                        name="offer_usage_within_limit",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OfferClaim",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("device_id", models.CharField(max_length=255)),
                ("user_id", models.CharField(blank=True, max_length=128, null=True)),
                ("claimed_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "offer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="claims",
                        to="offers.offer",
                    ),
                ),
            ],
            options={
                "db_table": "offers_offer_claim",
                "ordering": ("claimed_at", "id"),
                "constraints": [
                    models.UniqueConstraint(fields=("offer", "device_id"), name="unique_offer_device_claim"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OfferUsage",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("user_id", models.CharField(db_index=True, max_length=128)),
                ("order_id", models.CharField(max_length=128)),
                ("device_id", models.CharField(blank=True, max_length=255, null=True)),
                ("discount_amount", models.DecimalField(decimal_places=2, max_digits=10)),
                (
                    "platform",
                    models.CharField(choices=[("mobile", "Mobile"), ("web", "Web")], default="web", max_length=10),
                ),
                ("used_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "offer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="usages",
                        to="offers.offer",
                    ),
                ),
            ],
            options={
                "db_table": "offers_offer_usage",
                "ordering": ("used_at", "id"),
                "indexes": [
                    models.Index(fields=["offer", "user_id"], name="idx_usage_offer_user"),
                ],
            },
        ),
    ]
