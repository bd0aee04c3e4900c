"""
Best-offer selection.

At most one offer applies per item or order. Selection is by greatest
discount, then priority, then most recent creation, then id, so the winner
never depends on the order candidates arrive in.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from .pricing import DiscountCalculator, PricingLine, as_decimal

if TYPE_CHECKING:
    from .models import Offer


@dataclass(frozen=True)
class PricedOffer:
    """An offer together with the discount it yields for a given line."""

    offer: Offer
    discount: Decimal


def _rank(priced: PricedOffer) -> tuple[Decimal, int, float, str]:
    offer = priced.offer
    return (priced.discount, offer.priority, offer.created_at.timestamp(), str(offer.pk))


class BestOfferSelector:
    @staticmethod
    def pick(priced_offers: Iterable[PricedOffer]) -> PricedOffer | None:
        """Pick the winner among already-priced offers."""
        return max(priced_offers, key=_rank, default=None)

    @classmethod
    def select_best(
        cls,
        offers: Iterable[Offer],
        line: PricingLine,
        calculator: type[DiscountCalculator] = DiscountCalculator,
    ) -> PricedOffer | None:
        """
        Price every offer against ``line`` and return the best one.

        Offers must already be eligible; zero-value discounts still compete
        so a free-delivery offer can win on an order with no delivery fee.
        """
        priced = [PricedOffer(offer=offer, discount=calculator.compute_discount(offer, line)) for offer in offers]
        return cls.pick(priced)

    @classmethod
    def select_best_for_item(
        cls,
        offers: Iterable[Offer],
        unit_price: Decimal,
        calculator: type[DiscountCalculator] = DiscountCalculator,
    ) -> PricedOffer | None:
        """Storefront variant: savings on a single unit. Offers saving nothing are skipped."""
        unit_price = as_decimal(unit_price)
        priced = []
        for offer in offers:
            savings = unit_price - calculator.item_discounted_price(offer, unit_price)
            if savings > 0:
                priced.append(PricedOffer(offer=offer, discount=savings))
        return cls.pick(priced)
