"""
Error kinds for the offers engine.

Eligibility and ledger outcomes are returned as values, never raised:
an ineligible offer is skipped by order pricing, and a lost claim race is
surfaced to the customer as "offer no longer available".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class OfferErrorKind(StrEnum):
    """Machine-readable reason codes."""

    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    EXPIRED_OR_INACTIVE = "expired_or_inactive"
    ALREADY_CLAIMED = "already_claimed"
    USAGE_LIMIT_EXCEEDED = "usage_limit_exceeded"
    USER_LIMIT_EXCEEDED = "user_limit_exceeded"
    MIN_ORDER_NOT_MET = "min_order_not_met"
    PLATFORM_MISMATCH = "platform_mismatch"
    DELIVERY_TYPE_MISMATCH = "delivery_type_mismatch"

    @property
    def message(self) -> str:
        return ERROR_MESSAGES[self]

    @property
    def is_unavailable(self) -> bool:
        """Kinds the order flow reports as "offer no longer available"."""
        return self in UNAVAILABLE_KINDS


ERROR_MESSAGES: dict[OfferErrorKind, str] = {
    OfferErrorKind.VALIDATION_ERROR: "Offer definition is invalid",
    OfferErrorKind.NOT_FOUND: "Offer not found",
    OfferErrorKind.EXPIRED_OR_INACTIVE: "Offer is inactive or outside its validity period",
    OfferErrorKind.ALREADY_CLAIMED: "This device has already claimed this offer",
    OfferErrorKind.USAGE_LIMIT_EXCEEDED: "Offer usage limit reached",
    OfferErrorKind.USER_LIMIT_EXCEEDED: "You have reached the usage limit for this offer",
    OfferErrorKind.MIN_ORDER_NOT_MET: "Order subtotal is below the offer minimum",
    OfferErrorKind.PLATFORM_MISMATCH: "Offer is not available on this platform",
    OfferErrorKind.DELIVERY_TYPE_MISMATCH: "Offer not valid for this delivery type",
}

UNAVAILABLE_KINDS = frozenset(
    {
        OfferErrorKind.ALREADY_CLAIMED,
        OfferErrorKind.USAGE_LIMIT_EXCEEDED,
        OfferErrorKind.USER_LIMIT_EXCEEDED,
        OfferErrorKind.EXPIRED_OR_INACTIVE,
    }
)


@dataclass(frozen=True)
class OfferValidationFailure:
    """
    Rejected admin create/update.

    Attributes:
        kind: Always VALIDATION_ERROR (or NOT_FOUND for updates of missing offers).
        field_errors: Field name -> messages, "__all__" for cross-field errors.
    """

    kind: OfferErrorKind = OfferErrorKind.VALIDATION_ERROR
    field_errors: dict[str, list[str]] = field(default_factory=dict)
