"""
Centralized offers configuration.

All offer-engine settings are read here so that services never touch
``django.conf.settings`` directly.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings

logger = logging.getLogger(__name__)

# ===============================================================================
# HELPER: SAFE VALUE PARSING
# ===============================================================================


def _get_positive_int(setting_name: str, default: int) -> int:
    """Get a positive integer from settings with validation."""
    value = getattr(settings, setting_name, default)
    try:
        result = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s=%r, using %s", setting_name, value, default)
        result = default
    return max(1, result)


def _get_non_negative_amount(setting_name: str, default: str) -> Decimal:
    """Get a currency amount (>= 0) from settings with validation."""
    value = getattr(settings, setting_name, default)
    try:
        # Convert through str to avoid float artefacts (2.99 -> 2.9900000001)
        result = Decimal(str(value))
    except (TypeError, ValueError, InvalidOperation):
        logger.warning("Invalid %s=%r, using %s", setting_name, value, default)
        result = Decimal(default)
    if result < 0:
        return Decimal("0")
    return result


# ===============================================================================
# PRICING
# ===============================================================================


def get_default_delivery_fee() -> Decimal:
    """Delivery fee waived by free-delivery offers when the caller passes none."""
    return _get_non_negative_amount("OFFERS_DEFAULT_DELIVERY_FEE", "2.99")


def get_default_platform() -> str:
    """Platform recorded on usage entries when the caller passes an unknown one."""
    value = getattr(settings, "OFFERS_DEFAULT_PLATFORM", "web") or "web"
    return value if value in ("mobile", "web") else "web"


# ===============================================================================
# LISTING
# ===============================================================================


def get_list_page_size() -> int:
    return min(_get_positive_int("OFFERS_LIST_PAGE_SIZE", 20), get_list_max_page_size())


def get_list_max_page_size() -> int:
    return _get_positive_int("OFFERS_LIST_MAX_PAGE_SIZE", 50)
