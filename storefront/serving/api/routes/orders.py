"""
Orders API Endpoints

Checkout, order history, public tracking, admin status changes and the
payment gateway webhook.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database.connection import get_db_dependency
from storefront.database.models import User
from storefront.integrations import OzowGateway
from storefront.serving.api.dependencies import get_current_user, get_payment_gateway, require_admin
from storefront.serving.api.schemas import (
    CheckoutResponse,
    Envelope,
    MessageResponse,
    OrderCreate,
    OrderData,
    OrderDetailOut,
    OrderList,
    OrderListItem,
    OrderOut,
    OrderStatusUpdate,
    OrderTrackOut,
    pagination,
)
from storefront.serving.cache import products_cache
from storefront.services.orders import OrderAssembler, OrderRequestItem

router = APIRouter()


@router.post(
    "",
    response_model=CheckoutResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    body: OrderCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
    gateway: OzowGateway = Depends(get_payment_gateway),
) -> CheckoutResponse:
    """
    Place an order.

    Answers with the order, or with a redirect URL when the payment method
    continues on the gateway's site.
    """
    result = await OrderAssembler(db, gateway).create_order(
        user_id=user.id,
        items=[OrderRequestItem(product_id=i.product_id, quantity=i.quantity) for i in body.items],
        shipping_address=body.shipping_address,
        billing_address=body.billing_address,
        payment_method=body.payment_method.value,
        shipping_method=body.shipping_method,
        notes=body.notes,
        customer_email=user.email,
    )
    await db.commit()
    await products_cache.invalidate_all()

    if result.redirect_url:
        return CheckoutResponse(
            redirect_url=result.redirect_url,
            order_number=result.order.order_number,
        )
    return CheckoutResponse(
        message="Order created successfully",
        data=OrderData(order=OrderDetailOut.model_validate(result.order)),
    )


@router.get("", response_model=Envelope[OrderList])
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[OrderList]:
    result = await OrderAssembler(db).list_orders(user.id, page=page, limit=limit)
    return Envelope(
        data=OrderList(
            orders=[
                OrderListItem(**OrderOut.model_validate(o).model_dump(), item_count=len(o.items))
                for o in result.items
            ],
            pagination=pagination(result, total_orders=result.total),
        )
    )


@router.get("/track/{order_number}", response_model=Envelope[OrderTrackOut])
async def track_order(
    order_number: str,
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[OrderTrackOut]:
    order = await OrderAssembler(db).track_order(order_number)
    return Envelope(data=OrderTrackOut.model_validate(order))


@router.post("/payments/notify", response_model=MessageResponse)
async def payment_notification(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db_dependency),
    gateway: OzowGateway = Depends(get_payment_gateway),
) -> MessageResponse:
    """Gateway webhook; authenticated by the notification hash."""
    await OrderAssembler(db, gateway).apply_payment_notification(payload)
    await db.commit()
    await products_cache.invalidate_all()
    return MessageResponse(message="Notification processed")


@router.get("/{order_id}", response_model=Envelope[OrderData])
async def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[OrderData]:
    order = await OrderAssembler(db).get_order(user.id, order_id)
    return Envelope(data=OrderData(order=OrderDetailOut.model_validate(order)))


@router.patch(
    "/{order_id}/status",
    response_model=Envelope[OrderData],
    dependencies=[Depends(require_admin)],
)
async def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[OrderData]:
    order = await OrderAssembler(db).update_status(
        order_id,
        body.status.value,
        tracking_number=body.tracking_number,
    )
    await db.commit()
    await products_cache.invalidate_all()
    return Envelope(
        message="Order status updated",
        data=OrderData(order=OrderDetailOut.model_validate(order)),
    )
