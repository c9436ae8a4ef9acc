"""
Storefront service errors.

Services raise these; the API layer maps each one to an HTTP status and a
JSON error body.
"""

from typing import Any, Dict, Optional


class StorefrontError(Exception):
    """
    Base exception for storefront operations.

    Attributes:
        message: Human-readable description, returned to the client
        status_code: HTTP status the API layer answers with
        details: Optional structured payload returned alongside the message
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationFailed(StorefrontError):
    """Malformed or incomplete input."""

    status_code = 400


class NotFound(StorefrontError):
    """Missing product, cart line, wishlist entry, order or address."""

    status_code = 404


class InsufficientStock(StorefrontError):
    """Requested quantity exceeds live stock."""

    status_code = 400

    def __init__(self, message: str, available: int):
        self.available = available
        super().__init__(message, details={"available": available})


class Conflict(StorefrontError):
    """Resource already exists."""

    status_code = 409


class Unauthorized(StorefrontError):
    """Missing or invalid credentials."""

    status_code = 401


class Forbidden(StorefrontError):
    """Authenticated but not allowed."""

    status_code = 403


class PaymentGatewayError(StorefrontError):
    """The external payment gateway could not start a payment."""

    status_code = 502
