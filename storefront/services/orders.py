"""
Order Assembler

Turns a list of (product, quantity) requests into a persisted order:

1. Validate every product and its stock
2. Price the lines and snapshot them as order items
3. Allocate a unique order number
4. Insert the order, decrement stock with guarded updates, empty the cart
5. For redirect payment methods, start the payment with the gateway

Steps 1-4 share the request transaction. A guarded decrement that matches no
row means another checkout took the stock first; raising InsufficientStock
rolls the whole order back. Step 5 happens after the order is committed; a
gateway failure cancels the order and returns its stock.

Stock changes leave the product cache to the caller, which invalidates it
once the transaction has committed.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

import structlog
from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.database.models import (
    CartItem,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Product,
)
from storefront.integrations.payments import OzowGateway
from storefront.serving.cache import products_cache
from storefront.services.catalog import Page
from storefront.services.exceptions import (
    Conflict,
    InsufficientStock,
    NotFound,
    StorefrontError,
    ValidationFailed,
)
from storefront.services.pricing import (
    calculate_summary,
    ensure_stock,
    generate_order_number,
    line_total,
)

logger = structlog.get_logger(__name__)

MAX_ORDER_NUMBER_ATTEMPTS = 5

# Gateway notification status -> (payment status, order status)
PAYMENT_OUTCOMES = {
    "Complete": (PaymentStatus.PAID, OrderStatus.CONFIRMED),
    "Cancelled": (PaymentStatus.CANCELLED, OrderStatus.CANCELLED),
    "Abandoned": (PaymentStatus.CANCELLED, OrderStatus.CANCELLED),
    "Error": (PaymentStatus.FAILED, OrderStatus.CANCELLED),
}

# Orders in these statuses never change again
FINAL_STATUSES = frozenset({OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value})


def is_open(order: Order) -> bool:
    """True while the order still waits on its payment outcome."""
    return (
        order.status == OrderStatus.PENDING.value
        and order.payment_status == PaymentStatus.PENDING.value
    )


@dataclass(frozen=True)
class OrderRequestItem:
    product_id: int
    quantity: int


@dataclass
class CheckoutResult:
    """Created order, plus where to send the shopper when payment is external"""
    order: Order
    redirect_url: Optional[str] = None


class OrderAssembler:
    """Checkout and order lifecycle operations."""

    def __init__(self, db: AsyncSession, gateway: Optional[OzowGateway] = None):
        self.db = db
        self._gateway = gateway

    @property
    def gateway(self) -> OzowGateway:
        if self._gateway is None:
            self._gateway = OzowGateway()
        return self._gateway

    # -------------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------------

    async def create_order(
        self,
        user_id: int,
        items: Iterable[OrderRequestItem],
        shipping_address: Dict[str, Any],
        billing_address: Dict[str, Any],
        payment_method: str,
        shipping_method: Optional[str] = None,
        notes: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> CheckoutResult:
        """
        Create an order from the requested items.

        Repeated product ids are merged before stock is checked.

        Raises:
            ValidationFailed: No items, bad quantity or unknown payment method
            NotFound: A product is missing or inactive
            InsufficientStock: A product has less stock than requested
            PaymentGatewayError: The gateway could not start the payment
        """
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationFailed(f"Unsupported payment method: {payment_method}")

        quantities: Dict[int, int] = {}
        for item in items:
            if item.quantity < 1:
                raise ValidationFailed("Item quantity must be at least 1")
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
        if not quantities:
            raise ValidationFailed("Order must contain at least one item")

        result = await self.db.execute(
            select(Product).where(Product.id.in_(quantities), Product.is_active.is_(True))
        )
        products = {p.id: p for p in result.scalars().all()}

        for product_id, quantity in quantities.items():
            product = products.get(product_id)
            if product is None:
                raise NotFound(f"Product with ID {product_id} not found")
            ensure_stock(product.name, product.stock_quantity, quantity)

        summary = calculate_summary(
            (products[pid].price, qty) for pid, qty in quantities.items()
        )

        order = Order(
            user_id=user_id,
            order_number=await self._allocate_order_number(),
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=method.value,
            subtotal=summary.subtotal,
            tax_amount=summary.tax_amount,
            shipping_amount=summary.shipping_amount,
            discount_amount=Decimal("0.00"),
            total_amount=summary.total_amount,
            shipping_address=shipping_address,
            billing_address=billing_address,
            shipping_method=shipping_method,
            notes=notes,
            items=[
                OrderItem(
                    product_id=pid,
                    product_name=products[pid].name,
                    product_sku=products[pid].sku,
                    quantity=qty,
                    unit_price=products[pid].price,
                    total_price=line_total(products[pid].price, qty),
                )
                for pid, qty in quantities.items()
            ],
        )
        self.db.add(order)
        await self.db.flush()

        for product_id, quantity in quantities.items():
            await self._take_stock(products[product_id], quantity)

        await self.db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        await self.db.flush()

        logger.info(
            "Order created",
            order_number=order.order_number,
            user_id=user_id,
            total=str(order.total_amount),
            lines=len(quantities),
            payment_method=method.value,
        )

        redirect_url = None
        if method.requires_redirect:
            redirect_url = await self._start_payment(order, customer_email)

        return CheckoutResult(order=await self._load(order.id), redirect_url=redirect_url)

    async def _allocate_order_number(self) -> str:
        for attempt in range(1, MAX_ORDER_NUMBER_ATTEMPTS + 1):
            candidate = generate_order_number()
            taken = await self.db.scalar(
                select(Order.id).where(Order.order_number == candidate)
            )
            if taken is None:
                return candidate
            logger.warning("Order number collision", order_number=candidate, attempt=attempt)

        raise StorefrontError("Could not allocate a unique order number")

    async def _take_stock(self, product: Product, quantity: int) -> None:
        result = await self.db.execute(
            update(Product)
            .where(Product.id == product.id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
        )
        if result.rowcount == 0:
            available = await self.db.scalar(
                select(Product.stock_quantity).where(Product.id == product.id)
            )
            logger.warning(
                "Stock taken by concurrent checkout",
                product_id=product.id,
                requested=quantity,
                available=available,
            )
            raise InsufficientStock(
                f"Insufficient stock for {product.name}. Available: {available}",
                available=available or 0,
            )

    async def _release_stock(self, order: Order) -> None:
        for item in order.items:
            await self.db.execute(
                update(Product)
                .where(Product.id == item.product_id)
                .values(stock_quantity=Product.stock_quantity + item.quantity)
            )

    async def _start_payment(self, order: Order, customer_email: Optional[str]) -> str:
        # The order must survive a gateway outage so it can be compensated
        await self.db.commit()

        try:
            redirect = await self.gateway.initiate_payment(
                amount=order.total_amount,
                reference=order.order_number,
                customer_email=customer_email,
            )
        except StorefrontError:
            order.payment_status = PaymentStatus.FAILED.value
            order.status = OrderStatus.CANCELLED.value
            await self._release_stock(order)
            await self.db.commit()
            await products_cache.invalidate_all()
            logger.error("Payment initiation failed, order cancelled", order_number=order.order_number)
            raise

        order.payment_id = redirect.transaction_id
        await self.db.flush()
        return redirect.url

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def _load(self, order_id: int) -> Order:
        return await self.db.scalar(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items))
            .execution_options(populate_existing=True)
        )

    async def list_orders(self, user_id: int, page: int = 1, limit: int = 10) -> Page:
        total = await self.db.scalar(
            select(func.count(Order.id)).where(Order.user_id == user_id)
        ) or 0

        result = await self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .options(selectinload(Order.items))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return Page(items=list(result.scalars().all()), total=total, page=page, limit=limit)

    async def get_order(self, user_id: int, order_id: int) -> Order:
        order = await self.db.scalar(
            select(Order)
            .where(Order.id == order_id, Order.user_id == user_id)
            .options(selectinload(Order.items))
        )
        if order is None:
            raise NotFound("Order not found")
        return order

    async def track_order(self, order_number: str) -> Order:
        order = await self.db.scalar(
            select(Order).where(Order.order_number == order_number)
        )
        if order is None:
            raise NotFound("Order not found")
        return order

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def update_status(
        self,
        order_id: int,
        status: str,
        tracking_number: Optional[str] = None,
    ) -> Order:
        """
        Admin status change.

        Cancelling returns the order's stock and cancels a still-pending
        payment. Cancelled and refunded orders are final.

        Raises:
            ValidationFailed: Unknown status, or the order is already final
            NotFound: No such order
            Conflict: The order changed status while being cancelled
        """
        try:
            new_status = OrderStatus(status)
        except ValueError:
            raise ValidationFailed(f"Invalid order status: {status}")

        order = await self.db.scalar(
            select(Order).where(Order.id == order_id).options(selectinload(Order.items))
        )
        if order is None:
            raise NotFound("Order not found")

        previous = order.status
        if previous in FINAL_STATUSES and new_status.value != previous:
            raise ValidationFailed(f"Order is {previous} and can no longer change status")

        if new_status is OrderStatus.CANCELLED and previous != OrderStatus.CANCELLED.value:
            await self._cancel(order, previous)
        else:
            order.status = new_status.value

        if tracking_number is not None:
            order.tracking_number = tracking_number
        await self.db.flush()

        logger.info(
            "Order status updated",
            order_number=order.order_number,
            previous=previous,
            status=new_status.value,
        )
        return await self._load(order.id)

    async def _cancel(self, order: Order, previous: str) -> None:
        result = await self.db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == previous)
            .values(
                status=OrderStatus.CANCELLED.value,
                payment_status=case(
                    (Order.payment_status == PaymentStatus.PENDING.value, PaymentStatus.CANCELLED.value),
                    else_=Order.payment_status,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise Conflict("Order status changed concurrently, please retry")
        await self._release_stock(order)

    async def apply_payment_notification(self, payload: Dict[str, Any]) -> Order:
        """
        Apply a gateway notification to its order.

        Only orders that are still pending in both status and payment status
        change. The change is a guarded update, so repeated, late or
        concurrent notifications for a settled order are ignored and its
        stock is returned at most once.

        Raises:
            ValidationFailed: Bad hash, or amount differs from the order total
            NotFound: No order with the notification's reference
        """
        if not self.gateway.verify_notification(payload):
            logger.warning("Payment notification failed hash check", reference=payload.get("TransactionReference"))
            raise ValidationFailed("Invalid notification hash")

        reference = payload.get("TransactionReference")
        order = await self.db.scalar(
            select(Order)
            .where(Order.order_number == reference)
            .options(selectinload(Order.items))
        )
        if order is None:
            raise NotFound("Order not found")

        gateway_status = payload.get("Status")
        log = logger.bind(order_number=order.order_number, gateway_status=gateway_status)

        if not is_open(order):
            log.info("Notification for settled order ignored", status=order.status, payment_status=order.payment_status)
            return order

        outcome = PAYMENT_OUTCOMES.get(gateway_status)
        if outcome is None:
            log.info("Notification recorded without change")
            return order

        payment_status, order_status = outcome
        if payment_status is PaymentStatus.PAID:
            try:
                amount = Decimal(str(payload.get("Amount")))
            except InvalidOperation:
                raise ValidationFailed("Invalid notification amount")
            if amount != order.total_amount:
                log.warning("Notification amount mismatch", amount=str(amount), total=str(order.total_amount))
                raise ValidationFailed("Notification amount does not match order total")

        values = {"payment_status": payment_status.value, "status": order_status.value}
        if payload.get("TransactionId"):
            values["payment_id"] = payload["TransactionId"]

        result = await self.db.execute(
            update(Order)
            .where(
                Order.id == order.id,
                Order.status == OrderStatus.PENDING.value,
                Order.payment_status == PaymentStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            log.info("Order settled concurrently, notification ignored")
            return await self._load(order.id)

        if payment_status is not PaymentStatus.PAID:
            await self._release_stock(order)

        log.info("Payment notification applied", payment_status=payment_status.value, status=order_status.value)
        return await self._load(order.id)
