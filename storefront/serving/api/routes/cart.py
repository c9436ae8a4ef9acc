"""
Cart Endpoints
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database.connection import get_db_dependency
from storefront.database.models import User
from storefront.serving.api.dependencies import get_current_user
from storefront.serving.api.schemas import (
    CartAddRequest,
    CartLineCheck,
    CartLineOut,
    CartOut,
    CartUpdateRequest,
    CartValidation,
    Envelope,
    MessageResponse,
    cart_line,
    cart_summary,
)
from storefront.services.cart import CartService

router = APIRouter()


@router.get("", response_model=Envelope[CartOut])
async def get_cart(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[CartOut]:
    cart = await CartService(db).get_cart(user.id)
    return Envelope(
        data=CartOut(
            items=[cart_line(item) for item in cart.items],
            summary=cart_summary(cart.summary),
        )
    )


@router.post("", response_model=Envelope[CartLineOut])
async def add_to_cart(
    body: CartAddRequest,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[CartLineOut]:
    line, created = await CartService(db).add_item(user.id, body.product_id, body.quantity)
    if created:
        response.status_code = status.HTTP_201_CREATED
    return Envelope(
        message="Item added to cart" if created else "Cart updated successfully",
        data=cart_line(line),
    )


@router.put("/{item_id}", response_model=Envelope[CartLineOut])
async def update_cart_item(
    item_id: int,
    body: CartUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[CartLineOut]:
    line = await CartService(db).update_quantity(user.id, item_id, body.quantity)
    return Envelope(message="Cart item updated", data=cart_line(line))


@router.delete("/{item_id}", response_model=MessageResponse)
async def remove_cart_item(
    item_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> MessageResponse:
    await CartService(db).remove_item(user.id, item_id)
    return MessageResponse(message="Item removed from cart")


@router.delete("", response_model=MessageResponse)
async def clear_cart(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> MessageResponse:
    await CartService(db).clear(user.id)
    return MessageResponse(message="Cart cleared")


@router.post("/move-to-wishlist/{item_id}", response_model=MessageResponse)
async def move_to_wishlist(
    item_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> MessageResponse:
    await CartService(db).move_to_wishlist(user.id, item_id)
    return MessageResponse(message="Item moved to wishlist")


@router.post("/validate", response_model=Envelope[CartValidation])
async def validate_cart(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[CartValidation]:
    checks, is_valid = await CartService(db).validate(user.id)
    return Envelope(
        data=CartValidation(
            items=[
                CartLineCheck(
                    id=c.item.id,
                    product_id=c.item.product_id,
                    name=c.item.product.name,
                    quantity=c.item.quantity,
                    available=c.available,
                    status=c.status,
                )
                for c in checks
            ],
            is_valid=is_valid,
        )
    )
