"""
Unit Tests - Wishlist Service
"""
import pytest
from sqlalchemy import select

from storefront.database.models import CartItem, WishlistItem
from storefront.services.cart import CartService
from storefront.services.exceptions import Conflict, InsufficientStock, NotFound
from storefront.services.wishlist import WishlistService


@pytest.fixture
def wishlist(db) -> WishlistService:
    return WishlistService(db)


async def cart_lines(db, user_id):
    result = await db.execute(select(CartItem).where(CartItem.user_id == user_id))
    return list(result.scalars().all())


async def wishlist_ids(db, user_id):
    result = await db.execute(select(WishlistItem.product_id).where(WishlistItem.user_id == user_id))
    return set(result.scalars().all())


class TestWishlistEntries:
    async def test_add_and_list(self, wishlist, customer, catalog):
        await wishlist.add(customer.id, catalog["a"].id)
        await wishlist.add(customer.id, catalog["b"].id)

        entries = await wishlist.list(customer.id)

        assert {e.product_id for e in entries} == {catalog["a"].id, catalog["b"].id}
        assert all(e.product.category is not None for e in entries)

    async def test_duplicate(self, wishlist, customer, catalog):
        await wishlist.add(customer.id, catalog["a"].id)

        with pytest.raises(Conflict):
            await wishlist.add(customer.id, catalog["a"].id)

    async def test_inactive_product(self, wishlist, customer, catalog):
        with pytest.raises(NotFound):
            await wishlist.add(customer.id, catalog["retired"].id)

    async def test_remove(self, wishlist, db, customer, catalog):
        await wishlist.add(customer.id, catalog["a"].id)

        await wishlist.remove(customer.id, catalog["a"].id)

        assert await wishlist_ids(db, customer.id) == set()

    async def test_remove_absent(self, wishlist, customer, catalog):
        with pytest.raises(NotFound):
            await wishlist.remove(customer.id, catalog["a"].id)

    async def test_check(self, wishlist, customer, catalog):
        entry = await wishlist.add(customer.id, catalog["a"].id)

        assert await wishlist.check(customer.id, catalog["a"].id) == {
            "in_wishlist": True,
            "wishlist_item_id": entry.id,
        }
        assert await wishlist.check(customer.id, catalog["b"].id) == {
            "in_wishlist": False,
            "wishlist_item_id": None,
        }

    async def test_clear(self, wishlist, db, customer, catalog):
        await wishlist.add(customer.id, catalog["a"].id)
        await wishlist.add(customer.id, catalog["b"].id)

        assert await wishlist.clear(customer.id) == 2
        assert await wishlist_ids(db, customer.id) == set()


class TestMoveToCart:
    """Moving an entry creates or increments exactly one cart line"""

    async def test_creates_cart_line(self, wishlist, db, customer, catalog):
        await wishlist.add(customer.id, catalog["a"].id)

        line = await wishlist.move_to_cart(customer.id, catalog["a"].id, 2)

        assert line.quantity == 2
        assert len(await cart_lines(db, customer.id)) == 1
        assert await wishlist_ids(db, customer.id) == set()

    async def test_increments_existing_line(self, wishlist, db, customer, catalog):
        await CartService(db).add_item(customer.id, catalog["a"].id, 3)
        await wishlist.add(customer.id, catalog["a"].id)

        line = await wishlist.move_to_cart(customer.id, catalog["a"].id)

        lines = await cart_lines(db, customer.id)
        assert len(lines) == 1
        assert line.quantity == 4

    async def test_stock_includes_cart_quantity(self, wishlist, db, customer, catalog):
        """Vase stock is 3; 2 in cart plus 2 moved is too many"""
        await CartService(db).add_item(customer.id, catalog["c"].id, 2)
        await wishlist.add(customer.id, catalog["c"].id)

        with pytest.raises(InsufficientStock):
            await wishlist.move_to_cart(customer.id, catalog["c"].id, 2)

        assert await wishlist_ids(db, customer.id) == {catalog["c"].id}

    async def test_not_in_wishlist(self, wishlist, customer, catalog):
        with pytest.raises(NotFound):
            await wishlist.move_to_cart(customer.id, catalog["a"].id)
