"""
Logging helpers for the offers engine.

- RequestIDFilter: request correlation ids on every record. Nothing in this
  package binds one; the order pipeline calling OfferService wraps each order in
  ``request_id_context(order_request_id)``, and records logged without one show "-".
- StructuredLogAdapter: structured context fields via ``extra``

Usage:
    from apps.common.logging import get_logger

    logger = get_logger(__name__, component="ledger")
    logger.info("Offer claimed", offer_id=offer.pk, device_id=device_id)
"""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Generator
from typing import Any

# Thread-local storage for request context
_request_context = threading.local()


def set_request_id(request_id: str) -> None:
    """Set the current request ID in thread-local storage."""
    _request_context.request_id = request_id


def get_request_id() -> str | None:
    """Get the current request ID from thread-local storage."""
    return getattr(_request_context, "request_id", None)


def clear_request_id() -> None:
    _request_context.request_id = None


@contextlib.contextmanager
def request_id_context(request_id: str) -> Generator[None, None, None]:
    """Bind a request ID for the duration of a block (worker threads, jobs)."""
    previous = get_request_id()
    set_request_id(request_id)
    try:
        yield
    finally:
        if previous is None:
            clear_request_id()
        else:
            set_request_id(previous)


class RequestIDFilter(logging.Filter):
    """
    Add the request ID to log records.

    Records logged outside a request get "-" so format strings that
    reference ``request_id`` never fail.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id() or "-"  # type: ignore[attr-defined]
        return True


class StructuredLogAdapter(logging.LoggerAdapter):
    """
    Log adapter that turns keyword arguments into ``extra`` fields.

        logger.warning("Usage limit reached", offer_id=offer_id)
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra", {}))

        for key, value in list(kwargs.items()):
            if key not in ("exc_info", "stack_info", "stacklevel", "extra"):
                extra[key] = value
                del kwargs[key]

        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str, **context: Any) -> StructuredLogAdapter:
    """Get a structured logger bound to ``context``."""
    return StructuredLogAdapter(logging.getLogger(name), context)
