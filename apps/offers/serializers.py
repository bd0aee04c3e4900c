"""
Offer serializers.
Admin input validation with an explicit field allow-list; ledger state is read-only.
"""

from rest_framework import serializers

from .models import COUPON_CODE_RE, HEX_COLOR_RE, DeliveryType, Offer, Platform

# Fields an admin may set on create/update. usage_count, claims and usage
# history are ledger state and never accepted from input.
EDITABLE_FIELDS = (
    "title",
    "subtitle",
    "description",
    "image_url",
    "banner_color",
    "terms_and_conditions",
    "offer_type",
    "value",
    "coupon_code",
    "min_order_amount",
    "max_discount_amount",
    "usage_limit",
    "user_usage_limit",
    "is_one_time_per_device",
    "platforms",
    "delivery_types",
    "applied_to_items",
    "applied_to_categories",
    "excluded_items",
    "combo_items",
    "combo_price",
    "start_date",
    "end_date",
    "priority",
    "is_active",
    "is_featured",
)


class OfferSerializer(serializers.ModelSerializer):
    """Offer definition for admin create/update and listings"""

    platforms = serializers.ListField(
        child=serializers.ChoiceField(choices=[p.value for p in Platform]), required=False
    )
    delivery_types = serializers.ListField(
        child=serializers.ChoiceField(choices=[d.value for d in DeliveryType]), required=False
    )
    terms_and_conditions = serializers.ListField(child=serializers.CharField(), required=False)
    applied_to_items = serializers.ListField(child=serializers.CharField(), required=False)
    applied_to_categories = serializers.ListField(child=serializers.CharField(), required=False)
    excluded_items = serializers.ListField(child=serializers.CharField(), required=False)
    discount_display = serializers.CharField(read_only=True)
    remaining_uses = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Offer
        fields = ["id", *EDITABLE_FIELDS, "usage_count", "discount_display", "remaining_uses", "created_at", "updated_at"]
        read_only_fields = ["id", "usage_count", "created_at", "updated_at"]

    def validate_coupon_code(self, value):
        if not value:
            return None
        code = value.upper().strip()
        if not COUPON_CODE_RE.match(code):
            raise serializers.ValidationError("Coupon code can only contain uppercase letters and numbers")
        return code

    def validate_banner_color(self, value):
        if value and not HEX_COLOR_RE.match(value):
            raise serializers.ValidationError("Please provide a valid hex color")
        return value

    def validate_combo_items(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Combo items must be a list")
        for entry in value:
            if not isinstance(entry, dict) or not entry.get("food_item"):
                raise serializers.ValidationError("Each combo item needs a food_item")
            quantity = entry.get("quantity", 1)
            if not isinstance(quantity, int) or quantity < 1:
                raise serializers.ValidationError("Combo item quantity must be a positive integer")
        return value
