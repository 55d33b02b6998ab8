# Overview: Error taxonomy shared by the pharmacy services and routes.

from __future__ import annotations


class PharmacyError(Exception):
    """Base class; every subclass maps to one HTTP status and a stable code."""

    status_code = 500
    code = "internal_failure"
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


class ValidationError(PharmacyError, ValueError):
    """400-level input problem (missing fields, zero adjustment, bad types)."""

    status_code = 400
    code = "invalid_argument"
    default_message = "Invalid argument"


class ConflictError(PharmacyError, ValueError):
    """409-level business rule conflict (e.g., duplicate pricing rule)."""

    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class NotFoundError(PharmacyError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class InsufficientStockError(PharmacyError):
    """
    Requested decrease exceeds what is on hand.

    Always carries both numbers so the caller can react without a second read.
    """

    status_code = 409
    code = "insufficient_stock"
    default_message = "Insufficient stock"

    def __init__(self, *, available: int, requested: int, message: str | None = None):
        super().__init__(message)
        self.available = available
        self.requested = requested

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["available"] = self.available
        body["requested"] = self.requested
        return body


class InternalFailure(PharmacyError):
    """Unexpected persistence failure; the enclosing unit of work was rolled back."""

    status_code = 500
    code = "internal_failure"
    default_message = "Internal failure"
