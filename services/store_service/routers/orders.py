"""Store orders router: checkout, order history and self-service cancellation."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import OrderStatus
from services.store_service.schemas import (
    CancelOrderRequest,
    CheckoutRequest,
    DirectCheckoutRequest,
    OrderResponse,
)
from services.store_service.services import checkout_ops, order_ops
from services.store_service.services.checkout_ops import (
    CheckoutDetails,
    RequestedLine,
)
from services.store_service.services.notifications import (
    OrderNotifier,
    get_order_notifier,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


def _checkout_details(checkout_in: CheckoutRequest) -> CheckoutDetails:
    return CheckoutDetails(
        shipping_address=checkout_in.shipping_address.model_dump(),
        payment_method=checkout_in.payment_method,
        shipping_method=checkout_in.shipping_method,
        coupon_code=checkout_in.coupon_code,
    )


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post(
    "/checkout", response_model=OrderResponse, status_code=status.HTTP_201_CREATED
)
async def checkout(
    checkout_in: CheckoutRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    notifier: OrderNotifier = Depends(get_order_notifier),
):
    """Place an order from the caller's cart."""
    return await checkout_ops.checkout_from_cart(
        db,
        user=current_user,
        details=_checkout_details(checkout_in),
        notifier=notifier,
    )


@router.post(
    "/checkout/direct",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
)
async def checkout_direct(
    checkout_in: DirectCheckoutRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    notifier: OrderNotifier = Depends(get_order_notifier),
):
    """Place an order for an explicit item list ("buy now")."""
    lines = [
        RequestedLine(item.product_id, item.sku, item.quantity)
        for item in checkout_in.items
    ]
    return await checkout_ops.checkout_direct(
        db,
        user=current_user,
        lines=lines,
        details=_checkout_details(checkout_in),
        notifier=notifier,
    )


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/orders", response_model=list[OrderResponse])
async def list_my_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List the caller's orders."""
    return await order_ops.list_orders_for_user(
        db, current_user, status=status_filter, limit=limit, offset=offset
    )


@router.get("/orders/{order_ref}", response_model=OrderResponse)
async def get_order(
    order_ref: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get one of the caller's orders by id or code."""
    return await order_ops.get_order_for_user(db, current_user, order_ref)


@router.post("/orders/{order_ref}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_ref: str,
    cancel_in: Optional[CancelOrderRequest] = None,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    notifier: OrderNotifier = Depends(get_order_notifier),
):
    """Cancel a pending or paid order."""
    return await checkout_ops.cancel_order(
        db,
        user=current_user,
        order_ref=order_ref,
        reason=cancel_in.reason if cancel_in else None,
        notifier=notifier,
    )
