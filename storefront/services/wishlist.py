"""
Wishlist operations.
"""

from typing import List, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, selectinload

from storefront.database.models import CartItem, Product, WishlistItem
from storefront.services.cart import check_quantity
from storefront.services.catalog import get_active_product
from storefront.services.exceptions import Conflict, NotFound
from storefront.services.pricing import ensure_stock

logger = structlog.get_logger(__name__)


class WishlistService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list(self, user_id: int) -> List[WishlistItem]:
        """Entries whose product is still active, newest first."""
        result = await self.db.execute(
            select(WishlistItem)
            .join(WishlistItem.product)
            .where(WishlistItem.user_id == user_id, Product.is_active.is_(True))
            .options(
                contains_eager(WishlistItem.product).selectinload(Product.images),
                contains_eager(WishlistItem.product).selectinload(Product.category),
            )
            .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().unique().all())

    async def _entry(self, user_id: int, product_id: int) -> Optional[WishlistItem]:
        return await self.db.scalar(
            select(WishlistItem).where(
                WishlistItem.user_id == user_id,
                WishlistItem.product_id == product_id,
            )
        )

    async def add(self, user_id: int, product_id: int) -> WishlistItem:
        await get_active_product(self.db, product_id)

        if await self._entry(user_id, product_id) is not None:
            raise Conflict("Product already in wishlist")

        entry = WishlistItem(user_id=user_id, product_id=product_id)
        self.db.add(entry)
        await self.db.flush()

        logger.info("Wishlist item added", user_id=user_id, product_id=product_id)
        return entry

    async def remove(self, user_id: int, product_id: int) -> None:
        result = await self.db.execute(
            delete(WishlistItem).where(
                WishlistItem.user_id == user_id,
                WishlistItem.product_id == product_id,
            )
        )
        if result.rowcount == 0:
            raise NotFound("Item not found in wishlist")

    async def clear(self, user_id: int) -> int:
        result = await self.db.execute(delete(WishlistItem).where(WishlistItem.user_id == user_id))
        return result.rowcount

    async def check(self, user_id: int, product_id: int) -> dict:
        entry = await self._entry(user_id, product_id)
        return {
            "in_wishlist": entry is not None,
            "wishlist_item_id": entry.id if entry else None,
        }

    async def move_to_cart(self, user_id: int, product_id: int, quantity: int = 1) -> CartItem:
        """
        Move a wishlist entry into the cart.

        Creates the cart line or increments the existing one, then deletes the
        wishlist entry, within the request transaction.

        Raises:
            NotFound: Entry absent, or product missing or inactive
            InsufficientStock: Cart quantity plus quantity exceeds stock
        """
        check_quantity(quantity)

        entry = await self._entry(user_id, product_id)
        if entry is None:
            raise NotFound("Item not found in wishlist")

        product = await get_active_product(self.db, product_id)
        line = await self.db.scalar(
            select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
        )
        existing = line.quantity if line else 0
        ensure_stock(product.name, product.stock_quantity, existing + quantity)

        if line is None:
            line = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
            self.db.add(line)
        else:
            line.quantity = existing + quantity
        await self.db.delete(entry)
        await self.db.flush()

        logger.info(
            "Wishlist item moved to cart",
            user_id=user_id,
            product_id=product_id,
            quantity=line.quantity,
        )
        return await self.db.scalar(
            select(CartItem)
            .where(CartItem.id == line.id)
            .options(selectinload(CartItem.product).selectinload(Product.images))
            .execution_options(populate_existing=True)
        )
