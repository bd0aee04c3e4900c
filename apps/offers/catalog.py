"""
Offer catalog: read-only lookups over stored offers.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from django.db.models import Exists, F, OuterRef, Q, QuerySet

from apps.common.types import Err, Ok, Result

from .config import get_list_max_page_size, get_list_page_size
from .errors import OfferErrorKind
from .models import Offer, OfferClaim, Platform

logger = logging.getLogger(__name__)

CANDIDATE_ORDERING = ("-priority", "-is_featured", "-created_at", "id")


def _is_uuid(value: object) -> bool:
    if isinstance(value, uuid.UUID):
        return True
    try:
        uuid.UUID(str(value))
    except (TypeError, ValueError):
        return False
    return True


def normalize_code(code: str) -> str:
    """Normalize coupon code to uppercase and trimmed."""
    return code.upper().strip()


class OfferCatalog:
    """
    Lookup and candidate scans.

    Platform and delivery-type sets are stored as JSON lists, so those two
    filters run in Python over the (already narrowed) window query.
    """

    @staticmethod
    def _with_ledger(queryset: QuerySet[Offer]) -> QuerySet[Offer]:
        """Prefetch claims and usage history so evaluation runs without extra queries."""
        return queryset.prefetch_related("claims", "usages")

    @staticmethod
    def _in_window(now: datetime) -> QuerySet[Offer]:
        return Offer.objects.filter(is_active=True, start_date__lte=now, end_date__gte=now)

    @staticmethod
    def _exclude_claimed(queryset: QuerySet[Offer], device_id: str | None) -> QuerySet[Offer]:
        if not device_id:
            return queryset
        claimed = OfferClaim.objects.filter(offer=OuterRef("pk"), device_id=device_id)
        return queryset.annotate(device_claimed=Exists(claimed)).exclude(
            Q(is_one_time_per_device=True) & Q(device_claimed=True)
        )

    @classmethod
    def find_candidates(
        cls,
        now: datetime,
        platform: str | None = None,
        delivery_type: str | None = None,
        device_id: str | None = None,
    ) -> list[Offer]:
        """
        Offers a context could use, best-first.

        Active, in-window, matching platform and delivery type, minus one-time
        offers this device already claimed. Sorted by priority, featured flag
        and recency.
        """
        queryset = cls._exclude_claimed(cls._in_window(now), device_id)
        queryset = cls._with_ledger(queryset.order_by(*CANDIDATE_ORDERING))
        candidates = [
            offer
            for offer in queryset
            if offer.is_valid_for_platform(platform) and (not delivery_type or offer.is_valid_for_delivery_type(delivery_type))
        ]
        logger.debug(
            "Found %d candidate offers (platform=%s, delivery_type=%s)",
            len(candidates),
            platform,
            delivery_type,
        )
        return candidates

    @classmethod
    def get_offer(cls, offer_id: uuid.UUID | str) -> Result[Offer, OfferErrorKind]:
        if not _is_uuid(offer_id):
            return Err(OfferErrorKind.NOT_FOUND)
        offer = cls._with_ledger(Offer.objects.filter(pk=offer_id)).first()
        if offer is None:
            return Err(OfferErrorKind.NOT_FOUND)
        return Ok(offer)

    @classmethod
    def find_by_coupon_code(
        cls,
        code: str,
        now: datetime,
        platform: str | None = None,
        device_id: str | None = None,
    ) -> Result[Offer, OfferErrorKind]:
        """Case-insensitive coupon lookup among active, in-window offers."""
        if not code or not code.strip():
            return Err(OfferErrorKind.NOT_FOUND)

        offer = cls._with_ledger(cls._in_window(now).filter(coupon_code=normalize_code(code))).first()
        if offer is None or not offer.is_valid_for_platform(platform):
            return Err(OfferErrorKind.NOT_FOUND)

        if offer.is_one_time_per_device and offer.has_device_claimed(device_id):
            return Err(OfferErrorKind.ALREADY_CLAIMED)

        return Ok(offer)

    @classmethod
    def list_offers(
        cls,
        featured: bool | None = None,
        offer_type: str | None = None,
        platform: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> tuple[list[Offer], int]:
        """
        Admin listing: every offer regardless of status or dates.
        Returns (page of offers, total matching count).
        """
        queryset = Offer.objects.all()
        if featured is not None:
            queryset = queryset.filter(is_featured=featured)
        if offer_type:
            queryset = queryset.filter(offer_type=offer_type)

        page_size = get_list_page_size() if limit is None else max(1, min(limit, get_list_max_page_size()))
        page = max(1, page)

        offers = list(queryset.order_by(*CANDIDATE_ORDERING))
        if platform and platform != Platform.ALL:
            offers = [offer for offer in offers if offer.is_valid_for_platform(platform)]

        start = (page - 1) * page_size
        return offers[start : start + page_size], len(offers)

    @classmethod
    def offers_for_items(cls, now: datetime, platform: str | None = None) -> list[Offer]:
        """Active, in-window offers with uses left that target at least one menu item."""
        queryset = (
            cls._in_window(now)
            .filter(Q(usage_limit__isnull=True) | Q(usage_count__lt=F("usage_limit")))
            .order_by(*CANDIDATE_ORDERING)
        )
        return [offer for offer in queryset if offer.applied_to_items and offer.is_valid_for_platform(platform)]
