"""Cart operations: one staging cart per user with display snapshots.

Cart prices are snapshots for rendering; checkout always re-prices from the
variant, so nothing here is trusted as a price source.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.store_service.errors import (
    CartItemNotFound,
    InsufficientStock,
    ProductNotFound,
    SkuNotFound,
    ValidationError,
)
from services.store_service.models import Cart, CartItem
from services.store_service.services.stock_ops import find_product
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount: Decimal
    shipping_fee: Decimal
    total: Decimal


# ---------------------------------------------------------------------------
# Pricing rules
# ---------------------------------------------------------------------------


def shipping_fee_for(subtotal: Decimal) -> Decimal:
    """Free shipping strictly above the threshold, flat fee otherwise."""
    settings = get_settings()
    if subtotal > settings.FREE_SHIPPING_THRESHOLD:
        return ZERO
    return settings.FLAT_SHIPPING_FEE


def compute_totals(items: Iterable, apply_shipping: bool = True) -> CartTotals:
    """Deterministic totals for anything with ``price`` and ``quantity``.

    An empty cart costs nothing, shipping included. With ``apply_shipping``
    off the shipping fee is always zero.
    """
    items = list(items)
    if not items:
        return CartTotals(ZERO, ZERO, ZERO, ZERO)

    subtotal = sum((Decimal(item.price) * item.quantity for item in items), ZERO)
    discount = ZERO  # Coupons are not supported yet
    shipping_fee = shipping_fee_for(subtotal) if apply_shipping else ZERO
    return CartTotals(
        subtotal=subtotal,
        discount=discount,
        shipping_fee=shipping_fee,
        total=subtotal - discount + shipping_fee,
    )


def apply_totals(cart: Cart) -> CartTotals:
    totals = compute_totals(cart.items)
    cart.subtotal = totals.subtotal
    cart.discount = totals.discount
    cart.shipping_fee = totals.shipping_fee
    cart.total = totals.total
    return totals


def empty_cart(cart: Cart) -> None:
    """Drop every line and zero the totals. The caller commits."""
    cart.items.clear()
    cart.coupon_code = None
    apply_totals(cart)


def _validate_quantity(quantity: int) -> None:
    limit = get_settings().CART_MAX_ITEM_QUANTITY
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    if quantity > limit:
        raise ValidationError(f"Maximum quantity per item is {limit}")


# ---------------------------------------------------------------------------
# Cart lifecycle
# ---------------------------------------------------------------------------


async def find_cart(db: AsyncSession, user_id: str) -> Cart | None:
    result = await db.execute(
        select(Cart)
        .where(Cart.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_cart(db: AsyncSession, user_id: str) -> Cart:
    """Return the user's cart, creating an empty one on first access."""
    cart = await find_cart(db, user_id)
    if cart:
        return cart

    cart = Cart(
        user_id=user_id,
        items=[],
        subtotal=ZERO,
        discount=ZERO,
        shipping_fee=ZERO,
        total=ZERO,
    )
    db.add(cart)
    try:
        await db.commit()
    except IntegrityError:
        # Another request created it first
        await db.rollback()
        cart = await find_cart(db, user_id)
        if cart is None:
            raise
        return cart

    logger.info("Created cart %s for user %s", cart.id, user_id)
    return cart


async def add_item(
    db: AsyncSession,
    *,
    user_id: str,
    product_id: uuid.UUID,
    sku: str,
    quantity: int = 1,
) -> Cart:
    """Add ``quantity`` of ``sku``, merging into an existing line.

    Stock is checked against the live variant, not the cart snapshot.
    """
    _validate_quantity(quantity)

    product = await find_product(db, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    variant = product.find_variant(sku)
    if variant is None:
        raise SkuNotFound(sku)

    cart = await get_or_create_cart(db, user_id)
    existing = cart.find_item(sku)
    new_quantity = quantity + (existing.quantity if existing else 0)
    _validate_quantity(new_quantity)
    if variant.stock < new_quantity:
        raise InsufficientStock(sku, new_quantity, variant.stock)

    if existing:
        existing.quantity = new_quantity
    else:
        cart.items.append(
            CartItem(
                position=max((item.position for item in cart.items), default=-1) + 1,
                product_id=product.id,
                sku=variant.sku,
                name=product.name,
                price=variant.price,
                image=variant.image or product.image,
                quantity=quantity,
            )
        )

    apply_totals(cart)
    await db.commit()
    logger.info("Cart %s: %s -> qty %d", cart.id, sku, new_quantity)
    return cart


async def update_item(
    db: AsyncSession, *, user_id: str, sku: str, quantity: int
) -> Cart:
    """Overwrite a line's quantity; zero or less removes the line."""
    cart = await get_or_create_cart(db, user_id)
    item = cart.find_item(sku)
    if item is None:
        raise CartItemNotFound(sku)

    if quantity <= 0:
        cart.items.remove(item)
    else:
        _validate_quantity(quantity)
        product = await find_product(db, item.product_id)
        variant = product.find_variant(item.sku) if product else None
        if variant is not None and variant.stock < quantity:
            raise InsufficientStock(sku, quantity, variant.stock)
        item.quantity = quantity

    apply_totals(cart)
    await db.commit()
    return cart


async def remove_item(db: AsyncSession, *, user_id: str, sku: str) -> Cart:
    return await update_item(db, user_id=user_id, sku=sku, quantity=0)


async def clear_cart(db: AsyncSession, *, user_id: str) -> Cart:
    """Empty the cart but keep the row."""
    cart = await get_or_create_cart(db, user_id)
    empty_cart(cart)
    await db.commit()
    return cart
