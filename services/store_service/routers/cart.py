"""Store cart router: the caller's staging cart."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.schemas import (
    CartItemCreate,
    CartItemUpdate,
    CartResponse,
)
from services.store_service.services import cart_ops
from services.store_service.services.permissions import (
    StoreAction,
    require_permission,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/cart", tags=["store"])


async def cart_owner(
    current_user: AuthUser = Depends(get_current_user),
) -> AuthUser:
    require_permission(current_user, StoreAction.MANAGE_OWN_CART)
    return current_user


@router.get("", response_model=CartResponse)
async def get_cart(
    current_user: AuthUser = Depends(cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the caller's cart, creating it on first access."""
    return await cart_ops.get_or_create_cart(db, current_user.user_id)


@router.post("/items", response_model=CartResponse)
async def add_cart_item(
    item_in: CartItemCreate,
    current_user: AuthUser = Depends(cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a variant to the cart, merging with an existing line."""
    return await cart_ops.add_item(
        db,
        user_id=current_user.user_id,
        product_id=item_in.product_id,
        sku=item_in.sku,
        quantity=item_in.quantity,
    )


@router.patch("/items/{sku}", response_model=CartResponse)
async def update_cart_item(
    sku: str,
    item_in: CartItemUpdate,
    current_user: AuthUser = Depends(cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    """Set a line's quantity; zero removes it."""
    return await cart_ops.update_item(
        db, user_id=current_user.user_id, sku=sku, quantity=item_in.quantity
    )


@router.delete("/items/{sku}", response_model=CartResponse)
async def remove_cart_item(
    sku: str,
    current_user: AuthUser = Depends(cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    return await cart_ops.remove_item(db, user_id=current_user.user_id, sku=sku)


@router.delete("", response_model=CartResponse)
async def clear_cart(
    current_user: AuthUser = Depends(cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    return await cart_ops.clear_cart(db, user_id=current_user.user_id)
