"""
Offer services.
Entry points for order pricing, storefront listings, redemption and admin lifecycle.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.common.types import Err, Ok, Result

from .catalog import OfferCatalog
from .eligibility import EligibilityContext, EligibilityEvaluator, EligibilityResult
from .errors import OfferErrorKind, OfferValidationFailure
from .ledger import ClaimLedger
from .models import Offer, OfferClaim, OfferUsage
from .pricing import ZERO, DiscountCalculator, LineItem, PricingLine, as_decimal
from .selection import BestOfferSelector, PricedOffer
from .serializers import EDITABLE_FIELDS, OfferSerializer

logger = logging.getLogger(__name__)


# ===============================================================================
# Storefront views
# ===============================================================================


@dataclass(frozen=True)
class StorefrontItem:
    """A menu item as supplied by the catalog of food items."""

    food_item: str
    unit_price: Decimal


@dataclass(frozen=True)
class ItemOfferView:
    """
    Best single-item offer for a menu listing.

    Attributes:
        offer: Winning offer, None when no offer saves anything.
        discounted_price: Unit price after the offer.
        savings: unit_price - discounted_price.
        discount_percentage: Whole-percent savings for the badge.
    """

    food_item: str
    unit_price: Decimal
    offer: Offer | None
    discounted_price: Decimal
    savings: Decimal
    discount_percentage: int

    @property
    def badge(self) -> str | None:
        return self.offer.discount_display if self.offer else None


# ===============================================================================
# Order pricing and redemption
# ===============================================================================


class OfferService:
    """
    Facade over catalog, evaluator, calculator, selector and ledger.

    ``clock`` is the only time source; pass a fixed callable in tests.
    """

    def __init__(self, clock: Callable[[], datetime] = timezone.now) -> None:
        self.clock = clock

    def context(  # noqa: PLR0913
        self,
        *,
        user_id: str | None = None,
        device_id: str | None = None,
        platform: str | None = None,
        delivery_type: str | None = None,
        subtotal: Decimal | int | str = ZERO,
    ) -> EligibilityContext:
        return EligibilityContext(
            now=self.clock(),
            user_id=str(user_id) if user_id is not None else None,
            device_id=device_id or None,
            platform=platform,
            delivery_type=delivery_type,
            subtotal=as_decimal(subtotal),
        )

    def list_candidate_offers(
        self,
        platform: str | None = None,
        delivery_type: str | None = None,
        device_id: str | None = None,
    ) -> list[Offer]:
        return OfferCatalog.find_candidates(
            self.clock(), platform=platform, delivery_type=delivery_type, device_id=device_id
        )

    def evaluate(self, offer: Offer, ctx: EligibilityContext) -> EligibilityResult:
        return EligibilityEvaluator.evaluate(offer, ctx)

    def price(self, offer: Offer, line: PricingLine) -> Decimal:
        return DiscountCalculator.compute_discount(offer, line)

    def select_best(self, offers: Iterable[Offer], line: PricingLine) -> PricedOffer | None:
        return BestOfferSelector.select_best(offers, line)

    def claim(
        self, offer_id: uuid.UUID | str, device_id: str, user_id: str | None = None
    ) -> Result[OfferClaim | None, OfferErrorKind]:
        return ClaimLedger.claim(offer_id, device_id, user_id)

    def record_usage(  # noqa: PLR0913
        self,
        offer_id: uuid.UUID | str,
        user_id: str,
        order_id: str,
        device_id: str | None,
        discount_amount: Decimal,
        platform: str | None,
    ) -> Result[OfferUsage, OfferErrorKind]:
        return ClaimLedger.record_usage(offer_id, user_id, order_id, device_id, discount_amount, platform)

    def best_offer_for_order(  # noqa: PLR0913
        self,
        items: Sequence[LineItem],
        *,
        user_id: str | None = None,
        device_id: str | None = None,
        platform: str | None = None,
        delivery_type: str | None = None,
        delivery_fee: Decimal | None = None,
        coupon_code: str | None = None,
    ) -> Result[PricedOffer | None, OfferErrorKind]:
        """
        Price an order: candidates, eligibility, discount, best pick.

        With ``coupon_code`` only that offer is considered and an ineligible
        coupon is reported as Err with the failing reason. Without one, the
        best eligible candidate is returned (Ok(None) when nothing applies).
        Nothing is claimed here; call ``record_usage`` at order confirmation.
        """
        line = PricingLine.from_items(items, delivery_fee=delivery_fee)
        ctx = self.context(
            user_id=user_id,
            device_id=device_id,
            platform=platform,
            delivery_type=delivery_type,
            subtotal=line.subtotal,
        )

        if coupon_code:
            found = OfferCatalog.find_by_coupon_code(coupon_code, ctx.now, platform=platform, device_id=device_id)
            if found.is_err():
                return Err(found.unwrap_err())
            offer = found.unwrap()
            verdict = self.evaluate(offer, ctx)
            if not verdict.eligible:
                logger.info("Coupon %s rejected: %s", offer.coupon_code, verdict.reason)
                return Err(verdict.reason or OfferErrorKind.EXPIRED_OR_INACTIVE)
            return Ok(PricedOffer(offer=offer, discount=self.price(offer, line)))

        candidates = self.list_candidate_offers(platform=platform, delivery_type=delivery_type, device_id=device_id)
        eligible = EligibilityEvaluator.filter_eligible(candidates, ctx)
        best = self.select_best(eligible, line)
        logger.debug(
            "Priced order: %d candidates, %d eligible, best=%s",
            len(candidates),
            len(eligible),
            best.offer.pk if best else None,
        )
        return Ok(best)

    def items_with_offers(self, items: Iterable[StorefrontItem], platform: str | None = None) -> list[ItemOfferView]:
        """Best per-item offer for each menu item; items with no saving get offer=None."""
        offers = OfferCatalog.offers_for_items(self.clock(), platform=platform)
        views = []
        for item in items:
            unit_price = as_decimal(item.unit_price)
            targeting = [offer for offer in offers if offer.applies_to_item(item.food_item)]
            best = BestOfferSelector.select_best_for_item(targeting, unit_price)
            if best is None:
                views.append(ItemOfferView(item.food_item, unit_price, None, unit_price, ZERO, 0))
                continue
            discounted = unit_price - best.discount
            views.append(
                ItemOfferView(
                    food_item=item.food_item,
                    unit_price=unit_price,
                    offer=best.offer,
                    discounted_price=discounted,
                    savings=best.discount,
                    discount_percentage=DiscountCalculator.percent_off(unit_price, discounted),
                )
            )
        return views


# ===============================================================================
# Admin lifecycle
# ===============================================================================


def _field_errors(errors: Mapping[str, Any]) -> dict[str, list[str]]:
    """Flatten DRF / Django error structures to field -> messages."""
    flat: dict[str, list[str]] = {}
    for field_name, messages in errors.items():
        if isinstance(messages, Mapping):
            flat[field_name] = [str(m) for nested in messages.values() for m in nested]
        elif isinstance(messages, list | tuple):
            flat[field_name] = [str(m) for m in messages]
        else:
            flat[field_name] = [str(messages)]
    return flat


def _not_found() -> Err[OfferValidationFailure]:
    return Err(OfferValidationFailure(kind=OfferErrorKind.NOT_FOUND))


class OfferAdminService:
    """
    Offer create/update/delete for administrators.

    Only fields in ``EDITABLE_FIELDS`` are ever written; ``usage_count``,
    claims and usage history stay under ledger control.
    """

    @staticmethod
    def create_offer(data: Mapping[str, Any]) -> Result[Offer, OfferValidationFailure]:
        serializer = OfferSerializer(data=dict(data))
        if not serializer.is_valid():
            return Err(OfferValidationFailure(field_errors=_field_errors(serializer.errors)))

        offer = Offer(**serializer.validated_data)
        try:
            offer.full_clean()
        except ValidationError as e:
            return Err(OfferValidationFailure(field_errors=_field_errors(e.message_dict)))

        offer.save()
        logger.info("Offer created: %s (%s)", offer.pk, offer.offer_type)
        return Ok(offer)

    @staticmethod
    def update_offer(offer_id: uuid.UUID | str, data: Mapping[str, Any]) -> Result[Offer, OfferValidationFailure]:
        """Partial update restricted to editable fields; unknown keys are ignored."""
        found = OfferCatalog.get_offer(offer_id)
        if found.is_err():
            return _not_found()
        offer = found.unwrap()

        ignored = sorted(set(data) - set(EDITABLE_FIELDS))
        if ignored:
            logger.warning("Ignoring non-editable offer fields on update of %s: %s", offer.pk, ", ".join(ignored))
        updates = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}

        serializer = OfferSerializer(offer, data=updates, partial=True)
        if not serializer.is_valid():
            return Err(OfferValidationFailure(field_errors=_field_errors(serializer.errors)))

        validated = serializer.validated_data
        for field_name, value in validated.items():
            setattr(offer, field_name, value)

        # Row lock held from the usage_count read through the save
        with transaction.atomic():
            current_count = (
                Offer.objects.select_for_update().filter(pk=offer.pk).values_list("usage_count", flat=True).first()
            )
            if current_count is None:
                return _not_found()
            offer.usage_count = current_count

            usage_limit = validated.get("usage_limit")
            if usage_limit is not None and usage_limit < current_count:
                return Err(
                    OfferValidationFailure(
                        field_errors={"usage_limit": [f"Usage limit cannot be below current usage ({current_count})"]}
                    )
                )

            try:
                offer.full_clean()
            except ValidationError as e:
                return Err(OfferValidationFailure(field_errors=_field_errors(e.message_dict)))

            if validated:
                offer.save(update_fields=[*validated.keys(), "updated_at"])
        if validated:
            logger.info("Offer updated: %s fields=%s", offer.pk, sorted(validated.keys()))
        return Ok(offer)

    @staticmethod
    def delete_offer(offer_id: uuid.UUID | str) -> Result[None, OfferErrorKind]:
        """Hard delete; claims and usage history go with the offer."""
        found = OfferCatalog.get_offer(offer_id)
        if found.is_err():
            return Err(OfferErrorKind.NOT_FOUND)
        offer = found.unwrap()
        offer.delete()
        logger.info("Offer deleted: %s", offer_id)
        return Ok(None)

    @staticmethod
    def apply_to_items(offer_id: uuid.UUID | str, item_ids: Sequence[str]) -> Result[Offer, OfferErrorKind]:
        """Add items to the offer's scope, keeping existing order and skipping duplicates."""
        if not item_ids:
            return Err(OfferErrorKind.VALIDATION_ERROR)
        with transaction.atomic():
            offer = OfferAdminService._locked(offer_id)
            if offer is None:
                return Err(OfferErrorKind.NOT_FOUND)
            current = [str(item) for item in offer.applied_to_items or []]
            added = [str(item) for item in dict.fromkeys(item_ids) if str(item) not in current]
            offer.applied_to_items = current + added
            offer.save(update_fields=["applied_to_items", "updated_at"])
        logger.info("Applied offer %s to %d new items", offer.pk, len(added))
        return Ok(offer)

    @staticmethod
    def remove_from_items(offer_id: uuid.UUID | str, item_ids: Sequence[str]) -> Result[Offer, OfferErrorKind]:
        if not item_ids:
            return Err(OfferErrorKind.VALIDATION_ERROR)
        removing = {str(item) for item in item_ids}
        with transaction.atomic():
            offer = OfferAdminService._locked(offer_id)
            if offer is None:
                return Err(OfferErrorKind.NOT_FOUND)
            offer.applied_to_items = [item for item in offer.applied_to_items or [] if str(item) not in removing]
            offer.save(update_fields=["applied_to_items", "updated_at"])
        logger.info("Removed %d items from offer %s", len(removing), offer.pk)
        return Ok(offer)

    @staticmethod
    def _locked(offer_id: uuid.UUID | str) -> Offer | None:
        try:
            uuid.UUID(str(offer_id))
        except ValueError:
            return None
        return Offer.objects.select_for_update().filter(pk=offer_id).first()
