"""
Error Taxonomy

Every failure the order engine reports is a QROrderError subclass carrying the
HTTP status the API layer should answer with. Messages of 5xx errors are safe
to show to callers; the underlying cause is only logged.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class FieldError:
    """A single invalid input field."""
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class QROrderError(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


# =============================================================================
# CLIENT ERRORS
# =============================================================================

class ValidationFailed(QROrderError):
    """Bad input shape or values. Raised before anything is written."""

    status_code = 400
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[list[FieldError]] = None,
    ):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(message, [FieldError(field, message)])


class AuthenticationRequired(QROrderError):
    status_code = 401
    default_message = "Authentication required"


class PermissionDenied(QROrderError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(QROrderError):
    status_code = 404
    default_message = "Resource not found"


class ConcurrencyConflict(QROrderError):
    """The order kept changing underneath an update."""

    status_code = 409
    default_message = "Order was modified concurrently, please retry"


class InvalidTransition(QROrderError):
    status_code = 409
    default_message = "Status transition not allowed"


class WebhookSignatureError(QROrderError):
    status_code = 400
    default_message = "Webhook signature verification failed"


# =============================================================================
# SERVER / DEPENDENCY ERRORS
# =============================================================================

class PersistenceError(QROrderError):
    status_code = 500
    default_message = "Storage error"


class DuplicateOrderNumber(PersistenceError):
    """Insert rejected by the order_number uniqueness constraint."""

    default_message = "Order number already exists"


class OrderPlacementError(QROrderError):
    status_code = 500
    default_message = "Could not place order"


class PaymentProviderError(QROrderError):
    status_code = 502
    default_message = "Payment provider error"


class ServiceUnavailable(QROrderError):
    status_code = 503
    default_message = "Service temporarily unavailable"
