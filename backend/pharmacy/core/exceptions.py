"""
Error taxonomy for the inventory and fulfillment engine, plus the HTTP mapping.

Engine functions raise `PharmacyError` subclasses. Each carries a stable
`code`, a human message, and a `context` dict (which medicine, requested vs.
available quantity, stranded items) so callers can show a precise message
without relying on raw storage error text.

SECURITY: storage failures are logged in full internally but returned to
HTTP clients with a generic message only.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import status

logger = logging.getLogger(__name__)


class PharmacyError(Exception):
    code = "pharmacy_error"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message, "context": self.context}


class ValidationError(PharmacyError):
    """Malformed or missing input. Raised before any storage access."""

    code = "validation_error"
    http_status = status.HTTP_400_BAD_REQUEST


class NotFound(PharmacyError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, ref: Any):
        super().__init__(f"{resource} {ref!r} not found", resource=resource, ref=ref)


class UnknownMedicine(PharmacyError):
    """A prescription line item references a medicine that does not exist."""

    code = "unknown_medicine"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, medicine_ref: Any):
        super().__init__(f"Unknown medicine {medicine_ref!r}", medicine_ref=medicine_ref)


class InsufficientStock(PharmacyError):
    """A decrement would take stock below zero."""

    code = "insufficient_stock"
    http_status = status.HTTP_409_CONFLICT

    def __init__(
        self,
        medicine_ref: Any,
        requested: int,
        available: Optional[int],
        name: Optional[str] = None,
    ):
        label = name or f"medicine {medicine_ref!r}"
        if available is None:
            message = f"Insufficient stock for {label}: requested {requested}"
        else:
            message = f"Insufficient stock for {label}: requested {requested}, available {available}"
        super().__init__(
            message,
            medicine_ref=medicine_ref,
            requested=requested,
            available=available,
        )


class InternalStorageError(PharmacyError):
    """The underlying storage operation failed unexpectedly."""

    code = "internal_storage_error"

    def public_dict(self) -> dict:
        # Never expose SQL errors or stranded-stock details to HTTP clients.
        return {
            "error": self.code,
            "detail": "An internal error occurred. Please try again later.",
            "context": {},
        }


def error_payload(exc: PharmacyError) -> dict:
    """
    Body for an HTTP error response.

    Client errors (4xx) include the full context since the caller caused them.
    Storage errors are logged with their cause and returned generically.
    """
    if isinstance(exc, InternalStorageError):
        logger.error(
            f"Internal storage error: {exc.message} context={exc.context}",
            exc_info=exc.__cause__ or exc,
        )
        return exc.public_dict()

    logger.info(f"Request rejected: {exc.code}: {exc.message}")
    return exc.to_dict()
