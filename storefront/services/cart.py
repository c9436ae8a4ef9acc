"""
Shopping cart operations.

A cart is the set of CartItem rows owned by one user, at most one row per
product. Stock is checked against the live product row on every write.
"""

from dataclasses import dataclass
from typing import List, Tuple

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, selectinload

from storefront.database.models import CartItem, Product, WishlistItem
from storefront.services.catalog import get_active_product
from storefront.services.exceptions import Conflict, NotFound, ValidationFailed
from storefront.services.pricing import PriceSummary, calculate_summary, ensure_stock

logger = structlog.get_logger(__name__)

MIN_QUANTITY = 1
MAX_QUANTITY = 10


def check_quantity(quantity: int) -> None:
    if not MIN_QUANTITY <= quantity <= MAX_QUANTITY:
        raise ValidationFailed(
            f"Quantity must be between {MIN_QUANTITY} and {MAX_QUANTITY}"
        )


@dataclass
class Cart:
    items: List[CartItem]
    summary: PriceSummary


@dataclass
class LineCheck:
    """Result of re-checking one cart line against live stock"""
    item: CartItem
    status: str
    available: int


class CartService:
    """Cart operations for a single request session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _lines_query(self, user_id: int):
        return (
            select(CartItem)
            .join(CartItem.product)
            .where(CartItem.user_id == user_id, Product.is_active.is_(True))
            .options(
                contains_eager(CartItem.product).selectinload(Product.images),
                contains_eager(CartItem.product).selectinload(Product.category),
            )
            .order_by(CartItem.updated_at.desc(), CartItem.id.desc())
            .execution_options(populate_existing=True)
        )

    async def get_cart(self, user_id: int) -> Cart:
        """Lines with live product data, newest first, plus totals."""
        result = await self.db.execute(self._lines_query(user_id))
        items = list(result.scalars().unique().all())
        summary = calculate_summary((item.product.price, item.quantity) for item in items)
        return Cart(items=items, summary=summary)

    async def _line(self, user_id: int, item_id: int) -> CartItem:
        line = await self.db.scalar(
            select(CartItem)
            .where(CartItem.id == item_id, CartItem.user_id == user_id)
            .options(selectinload(CartItem.product).selectinload(Product.images))
            .execution_options(populate_existing=True)
        )
        if line is None:
            raise NotFound("Cart item not found")
        return line

    async def add_item(self, user_id: int, product_id: int, quantity: int = 1) -> Tuple[CartItem, bool]:
        """
        Add a product or increase the quantity of its existing line.

        Returns:
            The cart line and whether it was newly created

        Raises:
            NotFound: Product missing or inactive
            InsufficientStock: Existing quantity plus quantity exceeds stock
        """
        check_quantity(quantity)
        product = await get_active_product(self.db, product_id)

        line = await self.db.scalar(
            select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
        )
        existing = line.quantity if line else 0
        ensure_stock(product.name, product.stock_quantity, existing + quantity)

        created = line is None
        if created:
            line = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
            self.db.add(line)
        else:
            line.quantity = existing + quantity
        await self.db.flush()

        logger.info(
            "Cart item added",
            user_id=user_id,
            product_id=product_id,
            quantity=line.quantity,
            created=created,
        )
        return await self._line(user_id, line.id), created

    async def update_quantity(self, user_id: int, item_id: int, quantity: int) -> CartItem:
        check_quantity(quantity)
        line = await self._line(user_id, item_id)
        ensure_stock(line.product.name, line.product.stock_quantity, quantity)

        line.quantity = quantity
        await self.db.flush()
        return await self._line(user_id, item_id)

    async def remove_item(self, user_id: int, item_id: int) -> None:
        result = await self.db.execute(
            delete(CartItem).where(CartItem.id == item_id, CartItem.user_id == user_id)
        )
        if result.rowcount == 0:
            raise NotFound("Cart item not found")

    async def clear(self, user_id: int) -> int:
        result = await self.db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        logger.info("Cart cleared", user_id=user_id, removed=result.rowcount)
        return result.rowcount

    async def move_to_wishlist(self, user_id: int, item_id: int) -> WishlistItem:
        """
        Move a cart line into the wishlist.

        The wishlist insert and the cart delete share the request transaction,
        so either both happen or neither does.
        """
        line = await self._line(user_id, item_id)

        exists = await self.db.scalar(
            select(WishlistItem.id).where(
                WishlistItem.user_id == user_id,
                WishlistItem.product_id == line.product_id,
            )
        )
        if exists is not None:
            raise Conflict("Item already in wishlist")

        entry = WishlistItem(user_id=user_id, product_id=line.product_id)
        self.db.add(entry)
        await self.db.delete(line)
        await self.db.flush()

        logger.info("Cart item moved to wishlist", user_id=user_id, product_id=entry.product_id)
        return entry

    async def validate(self, user_id: int) -> Tuple[List[LineCheck], bool]:
        """
        Re-check every line against live stock.

        Lines whose product was deactivated are reported as ``removed``.
        """
        result = await self.db.execute(
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .options(selectinload(CartItem.product).selectinload(Product.images))
            .order_by(CartItem.updated_at.desc(), CartItem.id.desc())
        )

        checks = []
        for item in result.scalars().all():
            if not item.product.is_active:
                status = "removed"
            elif item.quantity > item.product.stock_quantity:
                status = "out_of_stock"
            else:
                status = "valid"
            checks.append(LineCheck(item=item, status=status, available=item.product.stock_quantity))

        return checks, all(check.status == "valid" for check in checks)
