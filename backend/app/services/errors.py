# Overview: Business error taxonomy raised by the posting services and mapped to HTTP by routes.

from __future__ import annotations


class PostingError(Exception):
    """
    Base class for business-rule failures.

    Raised before or during a posting transaction; the transaction is
    always rolled back in full before the error reaches the caller.
    """
    status_code = 400
    code = "POSTING_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationFailed(PostingError):
    """Malformed request: missing lines, bad payment target, unbalanced split, ..."""
    code = "VALIDATION_FAILED"


class NoOpenPeriod(PostingError):
    """The business date is not covered by any open fiscal period."""
    code = "NO_OPEN_PERIOD"


class FiscalPeriodClosed(PostingError):
    """The business date falls inside a closed fiscal period."""
    status_code = 403
    code = "FISCAL_PERIOD_CLOSED"


class InsufficientStock(PostingError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"


class InsufficientFunds(PostingError):
    status_code = 409
    code = "INSUFFICIENT_FUNDS"


class NotFound(PostingError):
    """Reference does not resolve inside the tenant (never reveals other tenants' rows)."""
    status_code = 404
    code = "NOT_FOUND"


class Conflict(PostingError):
    status_code = 409
    code = "CONFLICT"
