"""
Offer eligibility evaluation.

Pure decision logic: given an offer and a request context, decide whether the
offer may be applied and, if not, which check failed first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from .errors import OfferErrorKind

if TYPE_CHECKING:
    from .models import Offer


@dataclass(frozen=True)
class EligibilityContext:
    """
    Who is asking, from where, and for how much.

    Attributes:
        now: Evaluation instant (from the caller's clock).
        user_id: Account id, None for anonymous browsing.
        device_id: Opaque client device id, None if the client sent none.
        platform: "mobile" or "web" (None skips the platform check).
        delivery_type: "delivery" or "pickup".
        subtotal: Order subtotal before discounts.
    """

    now: datetime
    user_id: str | None = None
    device_id: str | None = None
    platform: str | None = None
    delivery_type: str | None = None
    subtotal: Decimal = Decimal("0")


@dataclass(frozen=True)
class EligibilityResult:
    """Outcome of an eligibility check; ``reason`` is set iff not eligible."""

    eligible: bool
    reason: OfferErrorKind | None = None

    @classmethod
    def ok(cls) -> EligibilityResult:
        return cls(eligible=True)

    @classmethod
    def rejected(cls, reason: OfferErrorKind) -> EligibilityResult:
        return cls(eligible=False, reason=reason)


ELIGIBLE = EligibilityResult.ok()


class EligibilityEvaluator:
    """
    Runs the eligibility checks in a fixed order and stops at the first failure.

    Reads claims and usage history through the offer's (ideally prefetched)
    relations; never writes.
    """

    @staticmethod
    def evaluate(offer: Offer, ctx: EligibilityContext) -> EligibilityResult:  # noqa: PLR0911
        if not offer.is_active or not offer.is_within_window(ctx.now):
            return EligibilityResult.rejected(OfferErrorKind.EXPIRED_OR_INACTIVE)

        if offer.is_depleted:
            return EligibilityResult.rejected(OfferErrorKind.USAGE_LIMIT_EXCEEDED)

        if offer.user_usage_count(ctx.user_id) >= offer.user_usage_limit:
            return EligibilityResult.rejected(OfferErrorKind.USER_LIMIT_EXCEEDED)

        if offer.is_one_time_per_device and offer.has_device_claimed(ctx.device_id):
            return EligibilityResult.rejected(OfferErrorKind.ALREADY_CLAIMED)

        if not offer.is_valid_for_platform(ctx.platform):
            return EligibilityResult.rejected(OfferErrorKind.PLATFORM_MISMATCH)

        if not offer.is_valid_for_delivery_type(ctx.delivery_type):
            return EligibilityResult.rejected(OfferErrorKind.DELIVERY_TYPE_MISMATCH)

        if ctx.subtotal < offer.min_order_amount:
            return EligibilityResult.rejected(OfferErrorKind.MIN_ORDER_NOT_MET)

        return ELIGIBLE

    @classmethod
    def filter_eligible(cls, offers: list[Offer], ctx: EligibilityContext) -> list[Offer]:
        """Keep the offers that pass every check, preserving order."""
        return [offer for offer in offers if cls.evaluate(offer, ctx).eligible]
