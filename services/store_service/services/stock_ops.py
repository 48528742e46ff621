"""Product/variant stock: the only code that changes ``ProductVariant.stock``.

Debits are a single conditional UPDATE (``stock >= qty`` in the WHERE clause)
so concurrent checkouts cannot oversell even without row locks. Every caller
stages the matching ledger row in the same transaction.
"""

import uuid
from decimal import Decimal
from typing import Optional

from libs.common.logging import get_logger
from services.store_service.errors import (
    InsufficientStock,
    SkuNotFound,
    ValidationError,
)
from services.store_service.models import (
    MANUAL_REF,
    InventoryReason,
    Product,
    ProductVariant,
)
from services.store_service.services.inventory_ledger import record_inventory_change
from services.store_service.services.permissions import (
    StoreAction,
    require_permission,
)
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

MANUAL_REASONS = frozenset(
    {InventoryReason.PURCHASE, InventoryReason.RETURN, InventoryReason.ADJUSTMENT}
)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def find_product(db: AsyncSession, product_id: uuid.UUID) -> Optional[Product]:
    """Load a product and its variants fresh from the database."""
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_variant(db: AsyncSession, sku: str) -> Optional[ProductVariant]:
    result = await db.execute(
        select(ProductVariant)
        .where(ProductVariant.sku == sku)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Mutations (caller owns the transaction)
# ---------------------------------------------------------------------------


async def debit_stock(db: AsyncSession, variant: ProductVariant, quantity: int) -> Decimal:
    """Atomically take ``quantity`` units from ``variant``.

    Returns the variant's price as read before the debit.

    Raises:
        InsufficientStock: fewer than ``quantity`` units were on hand.
    """
    unit_price = variant.price
    result = await db.execute(
        update(ProductVariant)
        .where(ProductVariant.id == variant.id, ProductVariant.stock >= quantity)
        .values(stock=ProductVariant.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(variant, attribute_names=["stock"])
    if result.rowcount != 1:
        raise InsufficientStock(variant.sku, quantity, variant.stock)

    logger.info("Debited %d x %s (now %d)", quantity, variant.sku, variant.stock)
    return unit_price


async def credit_stock(db: AsyncSession, sku: str, quantity: int) -> bool:
    """Atomically return ``quantity`` units to ``sku``. No upper bound.

    Returns False when the variant no longer exists; the caller still records
    the ledger row so the order's audit trail stays complete.
    """
    result = await db.execute(
        update(ProductVariant)
        .where(ProductVariant.sku == sku)
        .values(stock=ProductVariant.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("Cannot credit %d x %s: variant no longer exists", quantity, sku)
        return False

    logger.info("Credited %d x %s", quantity, sku)
    return True


# ---------------------------------------------------------------------------
# Manual adjustment (commits)
# ---------------------------------------------------------------------------


async def adjust_stock(
    db: AsyncSession,
    *,
    actor,
    sku: str,
    quantity: int,
    reason: InventoryReason = InventoryReason.ADJUSTMENT,
    note: Optional[str] = None,
) -> ProductVariant:
    """Staff restock or correction outside any order, with its ledger row."""
    require_permission(actor, StoreAction.ADJUST_STOCK)
    if reason not in MANUAL_REASONS:
        raise ValidationError(f"Reason '{reason.value}' is reserved for order flows")
    if quantity == 0:
        raise ValidationError("Adjustment quantity must not be zero")

    try:
        variant = await find_variant(db, sku)
        if variant is None:
            raise SkuNotFound(sku)

        if quantity > 0:
            await credit_stock(db, sku, quantity)
        else:
            await debit_stock(db, variant, -quantity)

        record_inventory_change(
            db,
            product_id=variant.product_id,
            sku=sku,
            quantity=quantity,
            reason=reason,
            ref_id=MANUAL_REF,
            note=note,
            performed_by=actor.user_id,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(variant)
    logger.info(
        "Stock for %s adjusted by %+d (%s) by %s -> %d",
        sku,
        quantity,
        reason.value,
        actor.user_id,
        variant.stock,
    )
    return variant
