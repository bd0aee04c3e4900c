"""
Discount calculation.

Each offer type maps to one frozen rule dataclass; ``discount_rule_for`` is the
only place that switches on the type, and it does so exhaustively so a new
``OfferType`` member fails type checking until it is priced.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, assert_never

from .config import get_default_delivery_fee
from .models import OfferType

if TYPE_CHECKING:
    from .models import Offer

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def as_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce model/caller amounts to Decimal; None becomes 0."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up, clamped at zero."""
    return max(ZERO, as_decimal(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


# ===============================================================================
# Order line input
# ===============================================================================


@dataclass(frozen=True)
class LineItem:
    """One cart line as supplied by the order pipeline."""

    food_item: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class PricingLine:
    """
    What the offer is priced against.

    Attributes:
        subtotal: Order (or item) subtotal, used by percentage/fixed offers.
        items: Cart lines, used by BOGO and combo offers.
        delivery_fee: Fee waived by free-delivery offers; None means the
            configured default.
    """

    subtotal: Decimal = ZERO
    items: Sequence[LineItem] = field(default_factory=tuple)
    delivery_fee: Decimal | None = None

    @classmethod
    def from_items(cls, items: Sequence[LineItem], delivery_fee: Decimal | None = None) -> PricingLine:
        subtotal = sum((as_decimal(item.unit_price) * item.quantity for item in items), ZERO)
        return cls(subtotal=subtotal, items=tuple(items), delivery_fee=delivery_fee)


# ===============================================================================
# Discount rules (one per offer type)
# ===============================================================================


@dataclass(frozen=True)
class PercentageRule:
    percent: Decimal
    cap: Decimal | None = None

    def raw_discount(self, line: PricingLine) -> Decimal:
        discount = as_decimal(line.subtotal) * self.percent / HUNDRED
        if self.cap is not None:
            discount = min(discount, self.cap)
        return discount


@dataclass(frozen=True)
class FixedAmountRule:
    amount: Decimal

    def raw_discount(self, line: PricingLine) -> Decimal:
        return min(self.amount, as_decimal(line.subtotal))


@dataclass(frozen=True)
class FreeDeliveryRule:
    def raw_discount(self, line: PricingLine) -> Decimal:
        if line.delivery_fee is None:
            return get_default_delivery_fee()
        return as_decimal(line.delivery_fee)


@dataclass(frozen=True)
class BuyOneGetOneRule:
    eligible_items: frozenset[str]

    def raw_discount(self, line: PricingLine) -> Decimal:
        discount = ZERO
        for item in line.items:
            if str(item.food_item) not in self.eligible_items:
                continue
            free_quantity = max(0, item.quantity) // 2
            discount += free_quantity * as_decimal(item.unit_price)
        return discount


@dataclass(frozen=True)
class ComboRule:
    # (food_item, quantity) per bundle entry
    entries: tuple[tuple[str, int], ...]
    combo_price: Decimal

    def itemized_price(self, line: PricingLine) -> Decimal:
        unit_prices = {str(item.food_item): as_decimal(item.unit_price) for item in line.items}
        total = ZERO
        for food_item, quantity in self.entries:
            unit_price = unit_prices.get(food_item)
            if unit_price is None:
                logger.debug("Combo item %s missing from line, priced at 0", food_item)
                continue
            total += unit_price * quantity
        return total

    def raw_discount(self, line: PricingLine) -> Decimal:
        return max(ZERO, self.itemized_price(line) - self.combo_price)


DiscountRule = PercentageRule | FixedAmountRule | FreeDeliveryRule | BuyOneGetOneRule | ComboRule


def discount_rule_for(offer: Offer) -> DiscountRule:
    """Build the pricing rule for an offer."""
    kind = OfferType(offer.offer_type)
    match kind:
        case OfferType.PERCENTAGE:
            return PercentageRule(
                percent=as_decimal(offer.value),
                cap=None if offer.max_discount_amount is None else as_decimal(offer.max_discount_amount),
            )
        case OfferType.FIXED_AMOUNT:
            return FixedAmountRule(amount=as_decimal(offer.value))
        case OfferType.FREE_DELIVERY:
            return FreeDeliveryRule()
        case OfferType.BUY_ONE_GET_ONE:
            return BuyOneGetOneRule(eligible_items=frozenset(str(i) for i in offer.applied_to_items or []))
        case OfferType.COMBO:
            entries = tuple(
                (str(entry["food_item"]), int(entry.get("quantity", 1))) for entry in offer.combo_items or []
            )
            return ComboRule(entries=entries, combo_price=as_decimal(offer.combo_price))
        case _:
            assert_never(kind)


# ===============================================================================
# Calculator
# ===============================================================================


class DiscountCalculator:
    """Prices an (already eligible) offer against an order line."""

    @staticmethod
    def compute_discount(offer: Offer, line: PricingLine) -> Decimal:
        rule = discount_rule_for(offer)
        return round_money(rule.raw_discount(line))

    @staticmethod
    def item_discounted_price(offer: Offer, unit_price: Decimal) -> Decimal:
        """
        Single-unit storefront price after the offer, for listing badges.
        Types that only make sense at order level leave the price unchanged.
        """
        kind = OfferType(offer.offer_type)
        unit_price = as_decimal(unit_price)
        price = unit_price
        if kind == OfferType.PERCENTAGE:
            percent = as_decimal(offer.value)
            price = unit_price * (HUNDRED - percent) / HUNDRED
            if offer.max_discount_amount is not None:
                price = max(price, unit_price - as_decimal(offer.max_discount_amount))
        elif kind == OfferType.FIXED_AMOUNT:
            price = unit_price - as_decimal(offer.value)
        elif kind == OfferType.BUY_ONE_GET_ONE:
            price = unit_price / 2
        return round_money(price)

    @staticmethod
    def percent_off(original: Decimal, discounted: Decimal) -> int:
        """Whole-percent savings for badges (e.g. 25 for 7.50 on 10.00)."""
        if original <= 0:
            return 0
        savings = (original - discounted) / original * HUNDRED
        return int(savings.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
