"""
Tests for offer discount calculation.
"""

from datetime import timedelta
from decimal import Decimal

from django.test import SimpleTestCase, override_settings
from django.utils import timezone

from apps.offers.models import Offer, OfferType
from apps.offers.pricing import (
    BuyOneGetOneRule,
    ComboRule,
    DiscountCalculator,
    FixedAmountRule,
    FreeDeliveryRule,
    LineItem,
    PercentageRule,
    PricingLine,
    discount_rule_for,
    round_money,
)


def make_offer(offer_type: str, **fields) -> Offer:
    """Unsaved offer; pricing never touches the database."""
    now = timezone.now()
    fields.setdefault("start_date", now - timedelta(days=1))
    fields.setdefault("end_date", now + timedelta(days=1))
    return Offer(title="Test", description="Test", offer_type=offer_type, **fields)


class RoundMoneyTests(SimpleTestCase):
    """Test money rounding."""

    def test_rounds_half_up(self):
        self.assertEqual(round_money(Decimal("0.025")), Decimal("0.03"))
        self.assertEqual(round_money(Decimal("2.345")), Decimal("2.35"))

    def test_clamps_negative_to_zero(self):
        self.assertEqual(round_money(Decimal("-4.20")), Decimal("0.00"))


class DiscountRuleDispatchTests(SimpleTestCase):
    """Test that every offer type maps to its rule."""

    def test_each_type_has_a_rule(self):
        expected = {
            OfferType.PERCENTAGE: PercentageRule,
            OfferType.FIXED_AMOUNT: FixedAmountRule,
            OfferType.FREE_DELIVERY: FreeDeliveryRule,
            OfferType.BUY_ONE_GET_ONE: BuyOneGetOneRule,
            OfferType.COMBO: ComboRule,
        }
        for offer_type, rule_class in expected.items():
            with self.subTest(offer_type=offer_type):
                offer = make_offer(offer_type.value, value=Decimal("10"), combo_price=Decimal("5"))
                self.assertIsInstance(discount_rule_for(offer), rule_class)

    def test_unknown_type_is_rejected(self):
        offer = make_offer("mystery")
        with self.assertRaises(ValueError):
            discount_rule_for(offer)


class PercentageDiscountTests(SimpleTestCase):
    """Test percentage offers."""

    def test_percentage_of_subtotal(self):
        offer = make_offer("percentage", value=Decimal("10"))
        discount = DiscountCalculator.compute_discount(offer, PricingLine(subtotal=Decimal("50.00")))
        self.assertEqual(discount, Decimal("5.00"))

    def test_cap_applies(self):
        offer = make_offer("percentage", value=Decimal("50"), max_discount_amount=Decimal("20.00"))
        discount = DiscountCalculator.compute_discount(offer, PricingLine(subtotal=Decimal("100.00")))
        self.assertEqual(discount, Decimal("20.00"))

    def test_zero_cap_is_a_real_cap(self):
        offer = make_offer("percentage", value=Decimal("50"), max_discount_amount=Decimal("0"))
        discount = DiscountCalculator.compute_discount(offer, PricingLine(subtotal=Decimal("100.00")))
        self.assertEqual(discount, Decimal("0.00"))

    def test_rounding_only_at_the_end(self):
        offer = make_offer("percentage", value=Decimal("33.33"))
        discount = DiscountCalculator.compute_discount(offer, PricingLine(subtotal=Decimal("10.00")))
        self.assertEqual(discount, Decimal("3.33"))


class FixedAmountDiscountTests(SimpleTestCase):
    """Test fixed-amount offers."""

    def test_fixed_amount(self):
        offer = make_offer("fixed-amount", value=Decimal("5.00"))
        discount = DiscountCalculator.compute_discount(offer, PricingLine(subtotal=Decimal("30.00")))
        self.assertEqual(discount, Decimal("5.00"))

    def test_never_exceeds_subtotal(self):
        offer = make_offer("fixed-amount", value=Decimal("15.00"))
        discount = DiscountCalculator.compute_discount(offer, PricingLine(subtotal=Decimal("10.00")))
        self.assertEqual(discount, Decimal("10.00"))


class FreeDeliveryDiscountTests(SimpleTestCase):
    """Test free-delivery offers."""

    def test_uses_caller_delivery_fee(self):
        offer = make_offer("free-delivery")
        line = PricingLine(subtotal=Decimal("20.00"), delivery_fee=Decimal("4.50"))
        self.assertEqual(DiscountCalculator.compute_discount(offer, line), Decimal("4.50"))

    def test_falls_back_to_configured_fee(self):
        offer = make_offer("free-delivery")
        line = PricingLine(subtotal=Decimal("20.00"))
        self.assertEqual(DiscountCalculator.compute_discount(offer, line), Decimal("2.99"))

    @override_settings(OFFERS_DEFAULT_DELIVERY_FEE="3.49")
    def test_configured_fee_is_read_at_call_time(self):
        offer = make_offer("free-delivery")
        self.assertEqual(DiscountCalculator.compute_discount(offer, PricingLine()), Decimal("3.49"))

    def test_zero_fee_gives_zero_discount(self):
        offer = make_offer("free-delivery")
        line = PricingLine(subtotal=Decimal("20.00"), delivery_fee=Decimal("0"))
        self.assertEqual(DiscountCalculator.compute_discount(offer, line), Decimal("0.00"))


class BuyOneGetOneDiscountTests(SimpleTestCase):
    """Test BOGO offers."""

    def setUp(self):
        self.offer = make_offer("buy-one-get-one", applied_to_items=["burger"])

    def test_every_second_unit_free(self):
        line = PricingLine.from_items([LineItem("burger", 3, Decimal("8.00"))])
        self.assertEqual(DiscountCalculator.compute_discount(self.offer, line), Decimal("8.00"))

        line = PricingLine.from_items([LineItem("burger", 4, Decimal("8.00"))])
        self.assertEqual(DiscountCalculator.compute_discount(self.offer, line), Decimal("16.00"))

    def test_quantity_table(self):
        expected = {0: "0.00", 1: "0.00", 2: "10.00", 3: "10.00", 4: "20.00", 5: "20.00"}
        for quantity, discount in expected.items():
            with self.subTest(quantity=quantity):
                line = PricingLine.from_items([LineItem("burger", quantity, Decimal("10.00"))])
                self.assertEqual(DiscountCalculator.compute_discount(self.offer, line), Decimal(discount))

    def test_single_unit_gets_nothing(self):
        line = PricingLine.from_items([LineItem("burger", 1, Decimal("8.00"))])
        self.assertEqual(DiscountCalculator.compute_discount(self.offer, line), Decimal("0.00"))

    def test_items_outside_scope_ignored(self):
        line = PricingLine.from_items([LineItem("fries", 4, Decimal("3.00")), LineItem("burger", 2, Decimal("8.00"))])
        self.assertEqual(DiscountCalculator.compute_discount(self.offer, line), Decimal("8.00"))


class ComboDiscountTests(SimpleTestCase):
    """Test combo offers."""

    def setUp(self):
        self.offer = make_offer(
            "combo",
            combo_items=[{"food_item": "burger", "quantity": 1}, {"food_item": "fries", "quantity": 2}],
            combo_price=Decimal("9.00"),
        )

    def test_discount_is_itemized_minus_combo_price(self):
        line = PricingLine.from_items([LineItem("burger", 1, Decimal("5.00")), LineItem("fries", 2, Decimal("3.00"))])
        # 5.00 + 2 * 3.00 - 9.00
        self.assertEqual(DiscountCalculator.compute_discount(self.offer, line), Decimal("2.00"))

    def test_combo_price_above_itemized_gives_zero(self):
        line = PricingLine.from_items([LineItem("burger", 1, Decimal("4.00")), LineItem("fries", 2, Decimal("2.00"))])
        self.assertEqual(DiscountCalculator.compute_discount(self.offer, line), Decimal("0.00"))

    def test_missing_combo_item_priced_at_zero(self):
        line = PricingLine.from_items([LineItem("burger", 1, Decimal("12.00"))])
        self.assertEqual(DiscountCalculator.compute_discount(self.offer, line), Decimal("3.00"))


class ItemDiscountedPriceTests(SimpleTestCase):
    """Test single-unit storefront prices."""

    def test_percentage(self):
        offer = make_offer("percentage", value=Decimal("20"))
        self.assertEqual(DiscountCalculator.item_discounted_price(offer, Decimal("10.00")), Decimal("8.00"))

    def test_percentage_respects_cap(self):
        offer = make_offer("percentage", value=Decimal("50"), max_discount_amount=Decimal("1.00"))
        self.assertEqual(DiscountCalculator.item_discounted_price(offer, Decimal("10.00")), Decimal("9.00"))

    def test_fixed_amount_floors_at_zero(self):
        offer = make_offer("fixed-amount", value=Decimal("15.00"))
        self.assertEqual(DiscountCalculator.item_discounted_price(offer, Decimal("10.00")), Decimal("0.00"))

    def test_bogo_is_half_price(self):
        offer = make_offer("buy-one-get-one")
        self.assertEqual(DiscountCalculator.item_discounted_price(offer, Decimal("9.00")), Decimal("4.50"))

    def test_order_level_types_leave_price_unchanged(self):
        offer = make_offer("free-delivery")
        self.assertEqual(DiscountCalculator.item_discounted_price(offer, Decimal("9.99")), Decimal("9.99"))

    def test_percent_off(self):
        self.assertEqual(DiscountCalculator.percent_off(Decimal("10.00"), Decimal("7.50")), 25)
        self.assertEqual(DiscountCalculator.percent_off(Decimal("0"), Decimal("0")), 0)
