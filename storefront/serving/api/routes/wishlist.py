"""
Wishlist Endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database.connection import get_db_dependency
from storefront.database.models import User
from storefront.serving.api.dependencies import get_current_user
from storefront.serving.api.schemas import (
    CartLineOut,
    Envelope,
    MessageResponse,
    MoveToCartRequest,
    WishlistAdded,
    WishlistAddRequest,
    WishlistCheck,
    WishlistEntryOut,
    cart_line,
    wishlist_entry,
)
from storefront.services.wishlist import WishlistService

router = APIRouter()


@router.get("", response_model=Envelope[List[WishlistEntryOut]])
async def get_wishlist(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[List[WishlistEntryOut]]:
    entries = await WishlistService(db).list(user.id)
    return Envelope(data=[wishlist_entry(e) for e in entries])


@router.post("", response_model=Envelope[WishlistAdded], status_code=status.HTTP_201_CREATED)
async def add_to_wishlist(
    body: WishlistAddRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[WishlistAdded]:
    entry = await WishlistService(db).add(user.id, body.product_id)
    return Envelope(
        message="Product added to wishlist",
        data=WishlistAdded(id=entry.id, product_id=entry.product_id),
    )


@router.delete("/{product_id}", response_model=MessageResponse)
async def remove_from_wishlist(
    product_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> MessageResponse:
    await WishlistService(db).remove(user.id, product_id)
    return MessageResponse(message="Product removed from wishlist")


@router.delete("", response_model=MessageResponse)
async def clear_wishlist(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> MessageResponse:
    await WishlistService(db).clear(user.id)
    return MessageResponse(message="Wishlist cleared")


@router.get("/check/{product_id}", response_model=Envelope[WishlistCheck])
async def check_wishlist(
    product_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[WishlistCheck]:
    result = await WishlistService(db).check(user.id, product_id)
    return Envelope(data=WishlistCheck(**result))


@router.post("/move-to-cart/{product_id}", response_model=Envelope[CartLineOut])
async def move_to_cart(
    product_id: int,
    body: Optional[MoveToCartRequest] = Body(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[CartLineOut]:
    quantity = body.quantity if body else 1
    line = await WishlistService(db).move_to_cart(user.id, product_id, quantity)
    return Envelope(message="Item moved to cart", data=cart_line(line))
