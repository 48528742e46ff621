"""Admin inventory: manual stock adjustments and the stock ledger."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_staff
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.schemas import (
    InventoryLogResponse,
    LedgerBalanceResponse,
    StockAdjustment,
    VariantStockResponse,
)
from services.store_service.services import inventory_ledger, stock_ops
from services.store_service.services.permissions import (
    StoreAction,
    require_permission,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/inventory", tags=["store-admin"])


@router.post("/adjust", response_model=VariantStockResponse)
async def adjust_inventory(
    adjustment: StockAdjustment,
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """Restock or correct a variant's stock (admin)."""
    return await stock_ops.adjust_stock(
        db,
        actor=current_user,
        sku=adjustment.sku,
        quantity=adjustment.quantity,
        reason=adjustment.reason,
        note=adjustment.note,
    )


@router.get("/logs", response_model=list[InventoryLogResponse])
async def list_inventory_logs(
    sku: Optional[str] = None,
    ref_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """Ledger rows, newest first (admin)."""
    require_permission(current_user, StoreAction.VIEW_INVENTORY_LOG)
    return await inventory_ledger.list_inventory_logs(
        db, sku=sku, ref_id=ref_id, limit=limit
    )


@router.get("/logs/{ref_id}/balance", response_model=LedgerBalanceResponse)
async def get_ledger_balance(
    ref_id: str,
    sku: Optional[str] = None,
    current_user: AuthUser = Depends(require_staff),
    db: AsyncSession = Depends(get_async_db),
):
    """Net stock movement recorded against an order code (admin)."""
    require_permission(current_user, StoreAction.VIEW_INVENTORY_LOG)
    balance = await inventory_ledger.ledger_balance(db, ref_id, sku=sku)
    return LedgerBalanceResponse(ref_id=ref_id, sku=sku, balance=balance)
