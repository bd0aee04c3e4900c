# ===============================================================================
# TEST FACTORIES FOR OFFERS
# ===============================================================================

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from django.utils import timezone

from apps.offers.models import Offer, OfferClaim, OfferUsage, OfferType


def fixed_now() -> datetime:
    """Current time truncated to the second; capture once per test and pass it around."""
    return timezone.now().replace(microsecond=0)


def create_offer(**overrides: Any) -> Offer:
    """Create an active, in-window percentage offer unless overridden."""
    now = overrides.pop('now', None) or timezone.now()
    defaults: dict[str, Any] = {
        'title': 'Weekend Deal',
        'description': 'Save on your order',
        'offer_type': OfferType.PERCENTAGE.value,
        'value': Decimal('10.00'),
        'start_date': now - timedelta(days=1),
        'end_date': now + timedelta(days=7),
    }
    defaults.update(overrides)
    return Offer.objects.create(**defaults)


def create_one_time_offer(**overrides: Any) -> Offer:
    """One-per-device offer; usage limits stay unset unless overridden."""
    overrides.setdefault('is_one_time_per_device', True)
    overrides.setdefault('title', 'Welcome Offer')
    return create_offer(**overrides)


def create_claim(offer: Offer, device_id: str = 'device-1', user_id: str | None = None) -> OfferClaim:
    return OfferClaim.objects.create(offer=offer, device_id=device_id, user_id=user_id)


def create_usage(  # noqa: PLR0913
    offer: Offer,
    user_id: str = 'user-1',
    order_id: str = 'order-1',
    device_id: str | None = None,
    discount_amount: Decimal = Decimal('5.00'),
    platform: str = 'web',
) -> OfferUsage:
    """Append a usage row directly (bypasses the ledger counter)."""
    return OfferUsage.objects.create(
        offer=offer,
        user_id=user_id,
        order_id=order_id,
        device_id=device_id,
        discount_amount=discount_amount,
        platform=platform,
    )


def offer_payload(**overrides: Any) -> dict[str, Any]:
    """Admin create payload for a valid percentage offer."""
    now = timezone.now()
    payload: dict[str, Any] = {
        'title': '20% Off Pizza',
        'description': 'All pizzas 20% off this week',
        'offer_type': 'percentage',
        'value': '20.00',
        'start_date': now - timedelta(hours=1),
        'end_date': now + timedelta(days=7),
    }
    payload.update(overrides)
    return payload
