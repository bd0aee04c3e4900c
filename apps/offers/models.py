"""
Offer models for the food-ordering platform.

Supports:
- Discount types (percentage, fixed amount, BOGO, free delivery, combo)
- Validity windows with an admin kill-switch
- Usage limits (global, per user, one-time per device)
- Platform and delivery-type targeting
- Item/category scoping and combo bundles

Ledger state (``usage_count``, claims, usage history) is only ever written by
``apps.offers.ledger.ClaimLedger`` through single-statement conditional writes.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, ClassVar

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

# ===============================================================================
# Constants
# ===============================================================================

MIN_PRIORITY = 1
MAX_PRIORITY = 10
MAX_TITLE_LENGTH = 200
MAX_SUBTITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 1000

COUPON_CODE_RE = re.compile(r"^[A-Z0-9]+$")
HEX_COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


class OfferType(StrEnum):
    """Discount variants. Pricing dispatches exhaustively over these."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed-amount"
    BUY_ONE_GET_ONE = "buy-one-get-one"
    FREE_DELIVERY = "free-delivery"
    COMBO = "combo"


class Platform(StrEnum):
    MOBILE = "mobile"
    WEB = "web"
    ALL = "all"


class DeliveryType(StrEnum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


VALUE_REQUIRED_TYPES = frozenset({OfferType.PERCENTAGE, OfferType.FIXED_AMOUNT})

DISCOUNT_DISPLAY: dict[OfferType, str] = {
    OfferType.BUY_ONE_GET_ONE: "Buy 1 Get 1 Free",
    OfferType.FREE_DELIVERY: "Free Delivery",
    OfferType.COMBO: "Special Combo Deal",
}


def default_platforms() -> list[str]:
    return [Platform.ALL.value]


def _format_amount(amount: Decimal) -> str:
    """Render 20.00 as "20" and 2.50 as "2.5" for badges."""
    normalized = amount.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal("1")))
    return format(normalized, "f")


# ===============================================================================
# Offer Model
# ===============================================================================


class Offer(models.Model):
    """
    A discount rule with a validity window, a scope and usage constraints.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Display
    title = models.CharField(max_length=MAX_TITLE_LENGTH)
    subtitle = models.CharField(max_length=MAX_SUBTITLE_LENGTH, blank=True)
    description = models.TextField(max_length=MAX_DESCRIPTION_LENGTH)
    image_url = models.URLField(max_length=500, blank=True)
    banner_color = models.CharField(max_length=7, default="#E91E63")
    terms_and_conditions = models.JSONField(default=list, blank=True)

    # Discount definition
    OFFER_TYPES: ClassVar[tuple[tuple[str, Any], ...]] = (
        (OfferType.PERCENTAGE.value, _("Percentage")),
        (OfferType.FIXED_AMOUNT.value, _("Fixed Amount")),
        (OfferType.BUY_ONE_GET_ONE.value, _("Buy One Get One")),
        (OfferType.FREE_DELIVERY.value, _("Free Delivery")),
        (OfferType.COMBO.value, _("Combo")),
    )
    offer_type = models.CharField(max_length=20, choices=OFFER_TYPES)
    value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text=_("Percent for percentage offers, currency amount for fixed-amount offers"),
    )
    coupon_code = models.CharField(max_length=50, unique=True, null=True, blank=True)
    min_order_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(0)],
    )
    max_discount_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text=_("Caps percentage discounts"),
    )

    # Usage limits
    usage_limit = models.PositiveIntegerField(null=True, blank=True, help_text=_("Global cap (null = unlimited)"))
    usage_count = models.PositiveIntegerField(default=0, editable=False)
    user_usage_limit = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    is_one_time_per_device = models.BooleanField(default=False)

    # Targeting and scope
    platforms = models.JSONField(default=default_platforms, blank=True)
    delivery_types = models.JSONField(default=list, blank=True)
    applied_to_items = models.JSONField(default=list, blank=True)
    applied_to_categories = models.JSONField(default=list, blank=True)
    excluded_items = models.JSONField(default=list, blank=True)

    # Combo bundle: [{"food_item": "<id>", "quantity": 1}, ...]
    combo_items = models.JSONField(default=list, blank=True)
    combo_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )

    # Validity
    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField()
    priority = models.PositiveSmallIntegerField(
        default=MIN_PRIORITY,
        validators=[MinValueValidator(MIN_PRIORITY), MaxValueValidator(MAX_PRIORITY)],
    )
    is_active = models.BooleanField(default=True, help_text=_("Admin kill-switch"))
    is_featured = models.BooleanField(default=False)

    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "offers_offer"
        ordering: ClassVar[tuple[str, ...]] = ("-priority", "-is_featured", "-created_at", "id")
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["is_active", "start_date", "end_date"], name="idx_offer_window"),
            models.Index(fields=["is_featured", "-priority"], name="idx_offer_featured"),
            models.Index(fields=["offer_type"], name="idx_offer_type"),
        )
        constraints: ClassVar[tuple[models.BaseConstraint, ...]] = (
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F("start_date")),
                name="offer_end_after_start",
            ),
            models.CheckConstraint(
                condition=models.Q(usage_limit__isnull=True) | models.Q(usage_count__lte=models.F("usage_limit")),
                name="offer_usage_within_limit",
            ),
        )

    def __str__(self) -> str:
        return f"{self.title} ({self.offer_type})"

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Normalize coupon code to uppercase before saving."""
        if self.coupon_code:
            self.coupon_code = self.coupon_code.upper().strip()
        else:
            self.coupon_code = None
        super().save(*args, **kwargs)

    # ---------------------------------------------------------------------------
    # Validation
    # ---------------------------------------------------------------------------

    def clean(self) -> None:
        """Validate the offer definition as a whole."""
        super().clean()
        errors: dict[str, list[str]] = {}
        self._validate_discount_values(errors)
        self._validate_targeting(errors)
        self._validate_combo(errors)
        self._validate_dates(errors)
        if errors:
            raise ValidationError(errors)

    def _validate_discount_values(self, errors: dict[str, list[str]]) -> None:
        if self.offer_type not in {t.value for t in OfferType}:
            errors.setdefault("offer_type", []).append(f"Unknown offer type: {self.offer_type}")
            return
        if OfferType(self.offer_type) in VALUE_REQUIRED_TYPES and self.value is None:
            errors.setdefault("value", []).append(f"{self.offer_type} offers require a value")
        if self.value is not None and self.value < 0:
            errors.setdefault("value", []).append("Value cannot be negative")
        if self.coupon_code and not COUPON_CODE_RE.match(self.coupon_code.upper().strip()):
            errors.setdefault("coupon_code", []).append(
                "Coupon code can only contain uppercase letters and numbers"
            )
        if self.banner_color and not HEX_COLOR_RE.match(self.banner_color):
            errors.setdefault("banner_color", []).append("Please provide a valid hex color")

    def _validate_targeting(self, errors: dict[str, list[str]]) -> None:
        allowed_platforms = {p.value for p in Platform}
        if not isinstance(self.platforms, list) or any(p not in allowed_platforms for p in self.platforms):
            errors.setdefault("platforms", []).append("Platforms must be a list of mobile, web or all")
        allowed_delivery = {d.value for d in DeliveryType}
        if not isinstance(self.delivery_types, list) or any(d not in allowed_delivery for d in self.delivery_types):
            errors.setdefault("delivery_types", []).append("Delivery types must be a list of delivery or pickup")

    def _validate_combo(self, errors: dict[str, list[str]]) -> None:
        if self.offer_type != OfferType.COMBO:
            return
        if not self.combo_items:
            errors.setdefault("combo_items", []).append("Combo offers require combo items")
        if self.combo_price is None:
            errors.setdefault("combo_price", []).append("Combo offers require a combo price")
        for entry in self.combo_items or []:
            if not isinstance(entry, dict) or not entry.get("food_item"):
                errors.setdefault("combo_items", []).append("Each combo item needs a food_item")
                break
            quantity = entry.get("quantity", 1)
            if not isinstance(quantity, int) or quantity < 1:
                errors.setdefault("combo_items", []).append("Combo item quantity must be at least 1")
                break

    def _validate_dates(self, errors: dict[str, list[str]]) -> None:
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            errors.setdefault("end_date", []).append("End date must be after start date")

    # ---------------------------------------------------------------------------
    # Derived state
    # ---------------------------------------------------------------------------

    @property
    def kind(self) -> OfferType:
        return OfferType(self.offer_type)

    def is_within_window(self, now: datetime) -> bool:
        """Window is inclusive at both ends."""
        return self.start_date <= now <= self.end_date

    @property
    def is_depleted(self) -> bool:
        if self.usage_limit is None:
            return False
        return self.usage_count >= self.usage_limit

    def is_valid_at(self, now: datetime) -> bool:
        return self.is_active and self.is_within_window(now) and not self.is_depleted

    @property
    def is_valid(self) -> bool:
        return self.is_valid_at(timezone.now())

    @property
    def remaining_uses(self) -> int | None:
        """Remaining global uses, or None if unlimited."""
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - self.usage_count)

    @property
    def discount_display(self) -> str:
        kind = self.kind
        if kind == OfferType.PERCENTAGE:
            return f"{_format_amount(self.value or Decimal('0'))}% OFF"
        if kind == OfferType.FIXED_AMOUNT:
            return f"${_format_amount(self.value or Decimal('0'))} OFF"
        return DISCOUNT_DISPLAY[kind]

    def is_valid_for_platform(self, platform: str | None) -> bool:
        """Empty platforms or "all" means unrestricted."""
        if not platform or platform == Platform.ALL:
            return True
        if not self.platforms or Platform.ALL in self.platforms:
            return True
        return platform in self.platforms

    def is_valid_for_delivery_type(self, delivery_type: str | None) -> bool:
        if not self.delivery_types:
            return True
        return delivery_type in self.delivery_types

    def has_device_claimed(self, device_id: str | None) -> bool:
        """Uses prefetched claims when available."""
        if not device_id:
            return False
        return any(claim.device_id == device_id for claim in self.claims.all())

    def user_usage_count(self, user_id: str | None) -> int:
        """Uses prefetched usage history when available."""
        if not user_id:
            return 0
        return sum(1 for usage in self.usages.all() if usage.user_id == str(user_id))

    def applies_to_item(self, food_item: str) -> bool:
        return str(food_item) in {str(item) for item in self.applied_to_items or []}


# ===============================================================================
# Ledger Models
# ===============================================================================


class OfferClaim(models.Model):
    """
    A device's claim on a one-time offer.
    The unique constraint is the serialization point for concurrent claims.
    """

    id = models.BigAutoField(primary_key=True)
    offer = models.ForeignKey(Offer, on_delete=models.CASCADE, related_name="claims")
    device_id = models.CharField(max_length=255)
    user_id = models.CharField(max_length=128, blank=True, null=True)
    claimed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "offers_offer_claim"
        ordering: ClassVar[tuple[str, ...]] = ("claimed_at", "id")
        constraints: ClassVar[tuple[models.BaseConstraint, ...]] = (
            models.UniqueConstraint(fields=["offer", "device_id"], name="unique_offer_device_claim"),
        )

    def __str__(self) -> str:
        return f"{self.device_id} claimed {self.offer_id}"


class OfferUsage(models.Model):
    """Append-only redemption history of an offer."""

    PLATFORM_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        (Platform.MOBILE.value, "Mobile"),
        (Platform.WEB.value, "Web"),
    )

    id = models.BigAutoField(primary_key=True)
    offer = models.ForeignKey(Offer, on_delete=models.CASCADE, related_name="usages")
    user_id = models.CharField(max_length=128, db_index=True)
    order_id = models.CharField(max_length=128)
    device_id = models.CharField(max_length=255, blank=True, null=True)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2)
    platform = models.CharField(max_length=10, choices=PLATFORM_CHOICES, default=Platform.WEB.value)
    used_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "offers_offer_usage"
        ordering: ClassVar[tuple[str, ...]] = ("used_at", "id")
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["offer", "user_id"], name="idx_usage_offer_user"),
        )

    def __str__(self) -> str:
        return f"{self.user_id} used {self.offer_id} on {self.order_id}"
