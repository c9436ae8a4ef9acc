"""
Unit Tests - Order Assembler
"""
import json
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from storefront.database.models import CartItem, Order, Product
from storefront.services.cart import CartService
from storefront.services.exceptions import (
    Conflict,
    InsufficientStock,
    NotFound,
    PaymentGatewayError,
    ValidationFailed,
)
from storefront.services.orders import OrderAssembler, OrderRequestItem

ADDRESS = {
    "firstName": "Jane",
    "lastName": "Doe",
    "addressLine1": "1 Long Street",
    "city": "Cape Town",
    "postalCode": "8001",
    "country": "ZA",
}


@pytest.fixture
def assembler(db, gateway) -> OrderAssembler:
    return OrderAssembler(db, gateway)


async def stock_of(db, product_id) -> int:
    return await db.scalar(select(Product.stock_quantity).where(Product.id == product_id))


async def place(assembler, user_id, items, payment_method="card"):
    return await assembler.create_order(
        user_id=user_id,
        items=[OrderRequestItem(product_id=pid, quantity=qty) for pid, qty in items],
        shipping_address=ADDRESS,
        billing_address=ADDRESS,
        payment_method=payment_method,
        customer_email="jane@example.com",
    )


class CacheRecorder:
    def __init__(self):
        self.invalidations = 0

    async def invalidate_all(self) -> int:
        self.invalidations += 1
        return 0


@pytest.fixture
def cache(monkeypatch) -> CacheRecorder:
    recorder = CacheRecorder()
    monkeypatch.setattr("storefront.services.orders.products_cache", recorder)
    return recorder


class TestCreateOrder:
    """Tests for checkout"""

    async def test_totals_and_snapshot(self, assembler, customer, catalog):
        result = await place(assembler, customer.id, [(catalog["a"].id, 2)])
        order = result.order

        assert result.redirect_url is None
        assert order.subtotal == Decimal("120.00")
        assert order.shipping_amount == Decimal("0.00")
        assert order.tax_amount == Decimal("9.60")
        assert order.total_amount == Decimal("129.60")
        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.order_number.startswith("MDH-")
        assert order.shipping_address == ADDRESS

        [item] = order.items
        assert item.product_name == "Oak Table"
        assert item.unit_price == Decimal("60.00")
        assert item.total_price == Decimal("120.00")

    async def test_flat_shipping(self, assembler, customer, catalog):
        result = await place(assembler, customer.id, [(catalog["b"].id, 1)])

        assert result.order.shipping_amount == Decimal("9.99")
        assert result.order.total_amount == Decimal("53.19")

    async def test_decrements_stock_and_empties_cart(self, assembler, db, customer, catalog):
        await CartService(db).add_item(customer.id, catalog["a"].id, 2)
        await CartService(db).add_item(customer.id, catalog["c"].id, 1)

        await place(assembler, customer.id, [(catalog["a"].id, 2), (catalog["c"].id, 1)])

        assert await stock_of(db, catalog["a"].id) == 8
        assert await stock_of(db, catalog["c"].id) == 2
        assert await db.scalar(
            select(func.count(CartItem.id)).where(CartItem.user_id == customer.id)
        ) == 0

    async def test_repeated_product_is_merged(self, assembler, db, customer, catalog):
        """Two lines of 2 against stock 3 must fail"""
        with pytest.raises(InsufficientStock):
            await place(assembler, customer.id, [(catalog["c"].id, 2), (catalog["c"].id, 2)])

        result = await place(assembler, customer.id, [(catalog["b"].id, 1), (catalog["b"].id, 2)])
        [item] = result.order.items
        assert item.quantity == 3

    async def test_insufficient_stock(self, assembler, db, customer, catalog):
        with pytest.raises(InsufficientStock) as exc_info:
            await place(assembler, customer.id, [(catalog["a"].id, 1), (catalog["c"].id, 4)])

        assert "Available: 3" in exc_info.value.message
        await db.rollback()
        assert await db.scalar(select(func.count(Order.id))) == 0
        assert await stock_of(db, catalog["a"].id) == 10

    async def test_concurrent_stock_loss_rolls_back(self, assembler, db, session_factory, customer, catalog):
        """Stock sold elsewhere after this session read it"""
        await db.get(Product, catalog["c"].id)
        async with session_factory() as other:
            await other.execute(
                update(Product).where(Product.id == catalog["c"].id).values(stock_quantity=1)
            )
            await other.commit()

        with pytest.raises(InsufficientStock) as exc_info:
            await place(assembler, customer.id, [(catalog["a"].id, 1), (catalog["c"].id, 2)])

        assert exc_info.value.available == 1
        await db.rollback()
        assert await db.scalar(select(func.count(Order.id))) == 0
        assert await stock_of(db, catalog["a"].id) == 10
        assert await stock_of(db, catalog["c"].id) == 1

    async def test_inactive_product(self, assembler, customer, catalog):
        with pytest.raises(NotFound):
            await place(assembler, customer.id, [(catalog["retired"].id, 1)])

    async def test_empty_order(self, assembler, customer):
        with pytest.raises(ValidationFailed):
            await place(assembler, customer.id, [])

    async def test_unknown_payment_method(self, assembler, customer, catalog):
        with pytest.raises(ValidationFailed):
            await place(assembler, customer.id, [(catalog["a"].id, 1)], payment_method="barter")

    async def test_leaves_cache_to_caller(self, assembler, customer, catalog, cache):
        await place(assembler, customer.id, [(catalog["a"].id, 2)])

        assert cache.invalidations == 0


class TestRedirectPayment:
    async def test_returns_redirect(self, assembler, customer, catalog, ozow):
        result = await place(assembler, customer.id, [(catalog["a"].id, 2)], payment_method="ozow")

        assert result.redirect_url == "https://pay.ozow.test/pr-123"
        assert result.order.payment_id == "pr-123"

        [request] = ozow.requests
        body = json.loads(request.content)
        assert body["transactionReference"] == result.order.order_number
        assert body["amount"] == "129.60"
        assert request.headers["ApiKey"] == "test-api-key"

    async def test_gateway_failure_compensates(self, assembler, db, customer, catalog, ozow):
        ozow.fail = True

        with pytest.raises(PaymentGatewayError):
            await place(assembler, customer.id, [(catalog["a"].id, 2)], payment_method="ozow")

        order = await db.scalar(select(Order).execution_options(populate_existing=True))
        assert order.status == "cancelled"
        assert order.payment_status == "failed"
        assert await stock_of(db, catalog["a"].id) == 10

    async def test_gateway_failure_invalidates_cache_after_commit(self, assembler, customer, catalog, ozow, cache):
        ozow.fail = True

        with pytest.raises(PaymentGatewayError):
            await place(assembler, customer.id, [(catalog["a"].id, 2)], payment_method="ozow")

        assert cache.invalidations == 1


class TestPaymentNotification:
    """Gateway webhook handling"""

    async def _ozow_order(self, assembler, customer, catalog):
        result = await place(assembler, customer.id, [(catalog["a"].id, 2)], payment_method="ozow")
        return result.order

    def _payload(self, gateway, order, status, amount="129.60"):
        payload = {
            "SiteCode": "TSTSTE0001",
            "TransactionId": "txn-789",
            "TransactionReference": order.order_number,
            "Amount": amount,
            "Status": status,
            "CurrencyCode": "ZAR",
            "IsTest": "true",
            "StatusMessage": "",
        }
        payload["Hash"] = gateway.sign_notification(payload)
        return payload

    async def test_complete_marks_paid(self, assembler, gateway, customer, catalog):
        order = await self._ozow_order(assembler, customer, catalog)

        updated = await assembler.apply_payment_notification(self._payload(gateway, order, "Complete"))

        assert updated.payment_status == "paid"
        assert updated.status == "confirmed"
        assert updated.payment_id == "txn-789"

    async def test_cancelled_restores_stock(self, assembler, db, gateway, customer, catalog):
        order = await self._ozow_order(assembler, customer, catalog)
        assert await stock_of(db, catalog["a"].id) == 8

        updated = await assembler.apply_payment_notification(self._payload(gateway, order, "Cancelled"))

        assert updated.payment_status == "cancelled"
        assert updated.status == "cancelled"
        assert await stock_of(db, catalog["a"].id) == 10

    async def test_error_marks_failed(self, assembler, gateway, customer, catalog):
        order = await self._ozow_order(assembler, customer, catalog)

        updated = await assembler.apply_payment_notification(self._payload(gateway, order, "Error"))

        assert updated.payment_status == "failed"
        assert updated.status == "cancelled"

    async def test_settled_order_ignored(self, assembler, db, gateway, customer, catalog):
        order = await self._ozow_order(assembler, customer, catalog)
        await assembler.apply_payment_notification(self._payload(gateway, order, "Complete"))

        again = await assembler.apply_payment_notification(self._payload(gateway, order, "Cancelled"))

        assert again.payment_status == "paid"
        assert await stock_of(db, catalog["a"].id) == 8

    async def test_bad_hash(self, assembler, gateway, customer, catalog):
        order = await self._ozow_order(assembler, customer, catalog)
        payload = self._payload(gateway, order, "Complete")
        payload["Amount"] = "1.00"

        with pytest.raises(ValidationFailed):
            await assembler.apply_payment_notification(payload)

    async def test_amount_mismatch(self, assembler, gateway, customer, catalog):
        order = await self._ozow_order(assembler, customer, catalog)

        with pytest.raises(ValidationFailed):
            await assembler.apply_payment_notification(
                self._payload(gateway, order, "Complete", amount="1.00")
            )

    async def test_pending_status_recorded_without_change(self, assembler, gateway, customer, catalog):
        order = await self._ozow_order(assembler, customer, catalog)

        updated = await assembler.apply_payment_notification(
            self._payload(gateway, order, "PendingInvestigation")
        )

        assert updated.payment_status == "pending"
        assert updated.status == "pending"

    async def test_duplicate_cancel_returns_stock_once(self, assembler, db, gateway, customer, catalog):
        order = await self._ozow_order(assembler, customer, catalog)
        payload = self._payload(gateway, order, "Cancelled")

        await assembler.apply_payment_notification(payload)
        await assembler.apply_payment_notification(payload)

        assert await stock_of(db, catalog["a"].id) == 10

    async def test_admin_cancel_then_abandoned(self, assembler, db, gateway, customer, catalog):
        order = await self._ozow_order(assembler, customer, catalog)
        await assembler.update_status(order.id, "cancelled")

        updated = await assembler.apply_payment_notification(self._payload(gateway, order, "Abandoned"))

        assert updated.status == "cancelled"
        assert updated.payment_status == "cancelled"
        assert await stock_of(db, catalog["a"].id) == 10

    async def test_admin_cancel_then_complete(self, assembler, db, gateway, customer, catalog):
        order = await self._ozow_order(assembler, customer, catalog)
        await assembler.update_status(order.id, "cancelled")

        updated = await assembler.apply_payment_notification(self._payload(gateway, order, "Complete"))

        assert updated.status == "cancelled"
        assert updated.payment_status == "cancelled"
        assert updated.payment_id == "pr-123"
        assert await stock_of(db, catalog["a"].id) == 10

    async def test_order_settled_by_another_session(self, assembler, db, session_factory, gateway, customer, catalog):
        """This session still holds the order as pending"""
        order = await self._ozow_order(assembler, customer, catalog)
        async with session_factory() as other:
            await other.execute(
                update(Order)
                .where(Order.id == order.id)
                .values(status="cancelled", payment_status="cancelled")
            )
            await other.commit()

        updated = await assembler.apply_payment_notification(self._payload(gateway, order, "Cancelled"))

        assert updated.status == "cancelled"
        assert await stock_of(db, catalog["a"].id) == 8


class TestOrderQueries:
    async def test_list_newest_first(self, assembler, customer, catalog):
        first = (await place(assembler, customer.id, [(catalog["a"].id, 1)])).order
        second = (await place(assembler, customer.id, [(catalog["b"].id, 1)])).order

        page = await assembler.list_orders(customer.id, page=1, limit=10)

        assert page.total == 2
        assert [o.id for o in page.items] == [second.id, first.id]
        assert page.total_pages == 1

    async def test_get_other_users_order(self, assembler, users, catalog):
        order = (await place(assembler, users["customer"].id, [(catalog["a"].id, 1)])).order

        with pytest.raises(NotFound):
            await assembler.get_order(users["admin"].id, order.id)

    async def test_track(self, assembler, customer, catalog):
        order = (await place(assembler, customer.id, [(catalog["a"].id, 1)])).order

        tracked = await assembler.track_order(order.order_number)

        assert tracked.id == order.id

    async def test_admin_cancel_restores_stock(self, assembler, db, customer, catalog):
        order = (await place(assembler, customer.id, [(catalog["a"].id, 3)])).order

        updated = await assembler.update_status(order.id, "cancelled")

        assert updated.status == "cancelled"
        assert updated.payment_status == "cancelled"
        assert await stock_of(db, catalog["a"].id) == 10

    async def test_ship_with_tracking(self, assembler, customer, catalog):
        order = (await place(assembler, customer.id, [(catalog["a"].id, 1)])).order

        updated = await assembler.update_status(order.id, "shipped", tracking_number="TRK1")

        assert updated.status == "shipped"
        assert updated.tracking_number == "TRK1"

    async def test_invalid_status(self, assembler, customer, catalog):
        order = (await place(assembler, customer.id, [(catalog["a"].id, 1)])).order

        with pytest.raises(ValidationFailed):
            await assembler.update_status(order.id, "teleported")


class TestStatusTransitions:
    """Admin status changes"""

    async def test_cancel_cancels_pending_payment(self, assembler, customer, catalog):
        order = (await place(assembler, customer.id, [(catalog["a"].id, 1)])).order

        updated = await assembler.update_status(order.id, "cancelled")

        assert updated.payment_status == "cancelled"

    async def test_cancel_keeps_settled_payment(self, assembler, db, customer, catalog):
        order = (await place(assembler, customer.id, [(catalog["a"].id, 2)])).order
        await db.execute(update(Order).where(Order.id == order.id).values(payment_status="paid"))

        updated = await assembler.update_status(order.id, "cancelled")

        assert updated.status == "cancelled"
        assert updated.payment_status == "paid"
        assert await stock_of(db, catalog["a"].id) == 10

    async def test_cancelled_order_cannot_reopen(self, assembler, db, customer, catalog):
        order = (await place(assembler, customer.id, [(catalog["a"].id, 3)])).order
        await assembler.update_status(order.id, "cancelled")

        with pytest.raises(ValidationFailed):
            await assembler.update_status(order.id, "pending")

        again = await assembler.update_status(order.id, "cancelled")
        assert again.status == "cancelled"
        assert await stock_of(db, catalog["a"].id) == 10

    async def test_refunded_is_final(self, assembler, customer, catalog):
        order = (await place(assembler, customer.id, [(catalog["a"].id, 1)])).order
        await assembler.update_status(order.id, "refunded")

        with pytest.raises(ValidationFailed):
            await assembler.update_status(order.id, "cancelled")

    async def test_cancel_changed_elsewhere_conflicts(self, assembler, db, session_factory, customer, catalog):
        order = (await place(assembler, customer.id, [(catalog["a"].id, 2)], payment_method="ozow")).order
        async with session_factory() as other:
            await other.execute(update(Order).where(Order.id == order.id).values(status="confirmed"))
            await other.commit()

        with pytest.raises(Conflict):
            await assembler.update_status(order.id, "cancelled")

        assert await stock_of(db, catalog["a"].id) == 8
