"""Inventory ledger: append-only audit rows for every stock mutation."""

import uuid
from typing import Optional

from services.store_service.models import InventoryLog, InventoryReason
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


def record_inventory_change(
    db: AsyncSession,
    *,
    product_id: uuid.UUID,
    sku: str,
    quantity: int,
    reason: InventoryReason,
    ref_id: Optional[str],
    note: Optional[str] = None,
    performed_by: Optional[str] = None,
) -> InventoryLog:
    """Stage a ledger row in the caller's transaction.

    Never commits: the row lands together with the stock write and order change
    it describes, or not at all.
    """
    entry = InventoryLog(
        product_id=product_id,
        sku=sku,
        quantity=quantity,
        reason=reason,
        ref_id=ref_id,
        note=note,
        performed_by=performed_by,
    )
    db.add(entry)
    return entry


async def list_inventory_logs(
    db: AsyncSession,
    *,
    sku: Optional[str] = None,
    ref_id: Optional[str] = None,
    limit: int = 100,
) -> list[InventoryLog]:
    """Newest-first ledger rows, optionally filtered by SKU and/or correlation id."""
    query = select(InventoryLog)
    if sku:
        query = query.where(InventoryLog.sku == sku)
    if ref_id:
        query = query.where(InventoryLog.ref_id == ref_id)
    query = query.order_by(InventoryLog.created_at.desc()).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def ledger_balance(db: AsyncSession, ref_id: str, sku: Optional[str] = None) -> int:
    """Net stock delta recorded against ``ref_id``."""
    query = select(func.coalesce(func.sum(InventoryLog.quantity), 0)).where(
        InventoryLog.ref_id == ref_id
    )
    if sku:
        query = query.where(InventoryLog.sku == sku)
    return int(await db.scalar(query))
