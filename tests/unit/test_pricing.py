"""
Unit Tests - Pricing
"""
import re
from decimal import Decimal

import pytest

from storefront.services.exceptions import InsufficientStock
from storefront.services.pricing import (
    FLAT_SHIPPING,
    calculate_summary,
    ensure_stock,
    generate_order_number,
    to_money,
)


class TestCalculateSummary:
    """Tests for cart and order totals"""

    def test_free_shipping_over_threshold(self):
        """Two units at 60.00 ship free and pay 8% tax"""
        summary = calculate_summary([(Decimal("60.00"), 2)])

        assert summary.subtotal == Decimal("120.00")
        assert summary.shipping_amount == Decimal("0.00")
        assert summary.tax_amount == Decimal("9.60")
        assert summary.total_amount == Decimal("129.60")
        assert summary.eligible_for_free_shipping

    def test_flat_shipping_under_threshold(self):
        summary = calculate_summary([(Decimal("40.00"), 1)])

        assert summary.subtotal == Decimal("40.00")
        assert summary.shipping_amount == FLAT_SHIPPING
        assert summary.tax_amount == Decimal("3.20")
        assert summary.total_amount == Decimal("53.19")
        assert not summary.eligible_for_free_shipping

    def test_threshold_is_inclusive(self):
        summary = calculate_summary([(Decimal("50.00"), 2)])
        assert summary.shipping_amount == Decimal("0.00")

    def test_empty_cart(self):
        summary = calculate_summary([])

        assert summary.subtotal == Decimal("0.00")
        assert summary.item_count == 0
        assert summary.tax_amount == Decimal("0.00")

    def test_tax_rounded_to_cents(self):
        """10.56 * 0.08 = 0.8448"""
        summary = calculate_summary([(Decimal("10.56"), 1)])
        assert summary.tax_amount == Decimal("0.84")

    def test_lines_rounded_before_summing(self):
        summary = calculate_summary([(Decimal("10.5625"), 1)])
        assert summary.subtotal == Decimal("10.56")

    def test_total_is_sum_of_rounded_parts(self):
        lines = [(Decimal("19.99"), 3), (Decimal("7.45"), 2), (Decimal("0.99"), 7)]
        summary = calculate_summary(lines)

        assert summary.subtotal == Decimal("81.80")
        assert summary.total_amount == summary.subtotal + summary.shipping_amount + summary.tax_amount
        assert summary.item_count == 3

    def test_accepts_floats(self):
        summary = calculate_summary([(59.99, 1)])
        assert summary.subtotal == Decimal("59.99")

    def test_to_dict_uses_floats(self):
        data = calculate_summary([(Decimal("60.00"), 2)]).to_dict()

        assert data["total_amount"] == 129.6
        assert data["free_shipping_threshold"] == 100.0
        assert data["eligible_for_free_shipping"] is True


class TestEnsureStock:
    def test_within_stock(self):
        ensure_stock("Vase", available=3, requested=3)

    def test_exceeds_stock(self):
        with pytest.raises(InsufficientStock) as exc_info:
            ensure_stock("Vase", available=3, requested=4)

        assert exc_info.value.available == 3
        assert "Available: 3" in exc_info.value.message
        assert exc_info.value.details == {"available": 3}


class TestOrderNumber:
    def test_format(self):
        assert re.fullmatch(r"MDH-\d{6}[0-9A-Z]{3}", generate_order_number())

    def test_numbers_vary(self):
        numbers = {generate_order_number() for _ in range(50)}
        assert len(numbers) > 1


def test_to_money_half_up():
    assert to_money(Decimal("2.345")) == Decimal("2.35")
    assert to_money("1.005") == Decimal("1.01")
