"""
Cart and order pricing.

Shared by the cart summary and the order assembler so both compute the same
totals. The policy constants are fixed; they do not vary per product or
region.
"""

import random
import string
import time
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

from storefront.services.exceptions import InsufficientStock

FREE_SHIPPING_THRESHOLD = Decimal("100.00")
FLAT_SHIPPING = Decimal("9.99")
TAX_RATE = Decimal("0.08")

ORDER_NUMBER_PREFIX = "MDH"

CENT = Decimal("0.01")
_BASE36 = string.digits + string.ascii_uppercase


def to_money(value) -> Decimal:
    """Round a numeric value half-up to whole cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceSummary:
    """Derived totals for a cart or an order"""
    subtotal: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    item_count: int

    @property
    def eligible_for_free_shipping(self) -> bool:
        return self.subtotal >= FREE_SHIPPING_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "shipping_amount": float(self.shipping_amount),
            "tax_amount": float(self.tax_amount),
            "total_amount": float(self.total_amount),
            "item_count": self.item_count,
            "free_shipping_threshold": float(FREE_SHIPPING_THRESHOLD),
            "eligible_for_free_shipping": self.eligible_for_free_shipping,
        }


def line_total(unit_price, quantity: int) -> Decimal:
    return to_money(Decimal(str(unit_price)) * quantity)


def shipping_for(subtotal: Decimal) -> Decimal:
    return Decimal("0.00") if subtotal >= FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING


def tax_for(subtotal: Decimal) -> Decimal:
    return to_money(subtotal * TAX_RATE)


def calculate_summary(lines: Iterable[Tuple[Decimal, int]]) -> PriceSummary:
    """
    Compute subtotal, shipping, tax and total.

    Args:
        lines: (unit_price, quantity) pairs

    Returns:
        PriceSummary where total == subtotal + shipping + tax exactly
    """
    subtotal = Decimal("0.00")
    count = 0
    for unit_price, quantity in lines:
        subtotal += line_total(unit_price, quantity)
        count += 1

    subtotal = to_money(subtotal)
    shipping = shipping_for(subtotal)
    tax = tax_for(subtotal)

    return PriceSummary(
        subtotal=subtotal,
        shipping_amount=shipping,
        tax_amount=tax,
        total_amount=to_money(subtotal + shipping + tax),
        item_count=count,
    )


def ensure_stock(product_name: str, available: int, requested: int) -> None:
    """Raise InsufficientStock when requested exceeds available."""
    if requested > available:
        raise InsufficientStock(
            f"Insufficient stock for {product_name}. Available: {available}",
            available=available,
        )


def generate_order_number() -> str:
    """
    Order number: prefix, the last six digits of the millisecond clock and
    three random base-36 characters, e.g. ``MDH-482913K7Q``.
    """
    timestamp = str(int(time.time() * 1000))[-6:]
    token = "".join(random.choices(_BASE36, k=3))
    return f"{ORDER_NUMBER_PREFIX}-{timestamp}{token}"
