"""
Storefront Services

Domain operations over an AsyncSession. The API layer owns the session and
its transaction; services flush but never commit, except where checkout has
to persist an order before calling the payment gateway.
"""
from .exceptions import (
    StorefrontError,
    ValidationFailed,
    NotFound,
    InsufficientStock,
    Conflict,
    Unauthorized,
    Forbidden,
    PaymentGatewayError,
)

__all__ = [
    "StorefrontError",
    "ValidationFailed",
    "NotFound",
    "InsufficientStock",
    "Conflict",
    "Unauthorized",
    "Forbidden",
    "PaymentGatewayError",
]
