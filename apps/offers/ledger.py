"""
Claim and usage ledger.

The only writer of ``Offer.usage_count``, ``OfferClaim`` and ``OfferUsage``.
Every mutation is a single conditional statement so concurrent workers cannot
over-claim: the unique (offer, device_id) index decides claim races and the
guarded ``UPDATE`` decides who gets the last global use.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.common.logging import get_logger
from apps.common.types import Err, Ok, Result

from .config import get_default_platform
from .errors import OfferErrorKind
from .models import Offer, OfferClaim, OfferUsage, Platform
from .pricing import round_money

logger = get_logger(__name__, component="offer_ledger")

USAGE_PLATFORMS = frozenset({Platform.MOBILE.value, Platform.WEB.value})


class _UsageRejectedError(Exception):
    """Raised inside the usage transaction to roll back the counter increment."""

    def __init__(self, kind: OfferErrorKind) -> None:
        super().__init__(kind.value)
        self.kind = kind


def _valid_offer_id(offer_id: uuid.UUID | str) -> bool:
    try:
        uuid.UUID(str(offer_id))
    except (TypeError, ValueError):
        return False
    return True


def normalize_usage_platform(platform: str | None) -> str:
    if platform in USAGE_PLATFORMS:
        return str(platform)
    return get_default_platform()


class ClaimLedger:
    @staticmethod
    def claim(
        offer_id: uuid.UUID | str,
        device_id: str,
        user_id: str | None = None,
    ) -> Result[OfferClaim | None, OfferErrorKind]:
        """
        Claim a one-time offer for a device.

        Of N concurrent claims for the same (offer, device) exactly one
        returns Ok; the rest get ALREADY_CLAIMED and write nothing. Offers
        that are not one-time per device record nothing and return Ok(None).
        """
        if not _valid_offer_id(offer_id):
            return Err(OfferErrorKind.NOT_FOUND)

        one_time = Offer.objects.filter(pk=offer_id).values_list("is_one_time_per_device", flat=True).first()
        if one_time is None:
            return Err(OfferErrorKind.NOT_FOUND)
        if not one_time:
            return Ok(None)
        if not device_id:
            return Err(OfferErrorKind.VALIDATION_ERROR)

        try:
            with transaction.atomic():
                claim = OfferClaim.objects.create(offer_id=offer_id, device_id=device_id, user_id=user_id)
        except IntegrityError:
            logger.info("Offer already claimed by device", offer_id=str(offer_id), device_id=device_id)
            return Err(OfferErrorKind.ALREADY_CLAIMED)

        logger.info("Offer claimed", offer_id=str(offer_id), device_id=device_id, user_id=user_id)
        return Ok(claim)

    @staticmethod
    def record_usage(  # noqa: PLR0913
        offer_id: uuid.UUID | str,
        user_id: str,
        order_id: str,
        device_id: str | None,
        discount_amount: Decimal,
        platform: str | None,
    ) -> Result[OfferUsage, OfferErrorKind]:
        """
        Record one redemption of an offer against an order.

        Increments the global counter only while it is below ``usage_limit``,
        then enforces the per-user limit under the row lock the increment
        holds. Any rejection leaves the counter and history untouched.
        """
        if not _valid_offer_id(offer_id):
            return Err(OfferErrorKind.NOT_FOUND)

        try:
            with transaction.atomic():
                # Write first: takes the row lock before anything is read.
                updated = (
                    Offer.objects.filter(pk=offer_id)
                    .filter(Q(usage_limit__isnull=True) | Q(usage_count__lt=F("usage_limit")))
                    .update(usage_count=F("usage_count") + 1)
                )
                if updated == 0:
                    if Offer.objects.filter(pk=offer_id).exists():
                        raise _UsageRejectedError(OfferErrorKind.USAGE_LIMIT_EXCEEDED)
                    raise _UsageRejectedError(OfferErrorKind.NOT_FOUND)

                offer = Offer.objects.only("id", "user_usage_limit", "is_one_time_per_device").get(pk=offer_id)
                used_by_user = OfferUsage.objects.filter(offer_id=offer_id, user_id=str(user_id)).count()
                if used_by_user >= offer.user_usage_limit:
                    raise _UsageRejectedError(OfferErrorKind.USER_LIMIT_EXCEEDED)

                usage = OfferUsage.objects.create(
                    offer_id=offer_id,
                    user_id=str(user_id),
                    order_id=str(order_id),
                    device_id=device_id or None,
                    discount_amount=round_money(discount_amount),
                    platform=normalize_usage_platform(platform),
                    used_at=timezone.now(),
                )

                if offer.is_one_time_per_device and device_id:
                    ClaimLedger._mark_device_claimed(offer_id, device_id, user_id)
        except _UsageRejectedError as rejected:
            logger.warning(
                "Offer usage rejected",
                offer_id=str(offer_id),
                order_id=str(order_id),
                reason=rejected.kind.value,
            )
            return Err(rejected.kind)

        logger.info(
            "Offer usage recorded",
            offer_id=str(offer_id),
            order_id=str(order_id),
            user_id=str(user_id),
            device_id=device_id,
            discount_amount=str(usage.discount_amount),
        )
        return Ok(usage)

    @staticmethod
    def _mark_device_claimed(offer_id: uuid.UUID | str, device_id: str, user_id: str | None) -> None:
        """Insert-if-absent; an existing claim for the device is left as is."""
        if OfferClaim.objects.filter(offer_id=offer_id, device_id=device_id).exists():
            return
        try:
            with transaction.atomic():
                OfferClaim.objects.create(offer_id=offer_id, device_id=device_id, user_id=user_id)
        except IntegrityError:
            logger.debug("Device claim already present", offer_id=str(offer_id), device_id=device_id)
