"""Admin order management: listing and status transitions."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_staff
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import OrderStatus
from services.store_service.schemas import (
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from services.store_service.services import order_ops
from services.store_service.services.notifications import (
    OrderNotifier,
    get_order_notifier,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["store-admin"])


@router.get("", response_model=OrderListResponse)
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """List all orders (admin)."""
    orders, total = await order_ops.list_orders(
        db, actor=current_user, status=status_filter, page=page, page_size=page_size
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{order_ref}", response_model=OrderResponse)
async def get_order(
    order_ref: str,
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """Get any order by id or code (admin)."""
    return await order_ops.load_order(db, order_ref)


@router.patch("/{order_ref}/status", response_model=OrderResponse)
async def update_order_status(
    order_ref: str,
    status_update: OrderStatusUpdate,
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
    notifier: OrderNotifier = Depends(get_order_notifier),
):
    """Move an order through its lifecycle (admin)."""
    return await order_ops.update_order_status(
        db,
        actor=current_user,
        order_ref=order_ref,
        status=status_update.status,
        note=status_update.note,
        notifier=notifier,
    )
