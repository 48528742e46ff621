"""Order status state machine.

``ALLOWED_TRANSITIONS`` is the whole rulebook; everything that changes an
order's status goes through ``transition_order`` inside the caller's
transaction.
"""

from types import MappingProxyType
from typing import Optional

from libs.common.logging import get_logger
from services.store_service.errors import InvalidTransition
from services.store_service.models import (
    InventoryReason,
    Order,
    OrderStatus,
    OrderTimelineEntry,
    PaymentStatus,
)
from services.store_service.services.inventory_ledger import record_inventory_change
from services.store_service.services.stock_ops import credit_stock
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ALLOWED_TRANSITIONS = MappingProxyType(
    {
        OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
        OrderStatus.PAID: frozenset(
            {
                OrderStatus.PROCESSING,
                OrderStatus.SHIPPED,
                OrderStatus.COMPLETED,
                OrderStatus.CANCELLED,
                OrderStatus.REFUNDED,
            }
        ),
        OrderStatus.PROCESSING: frozenset(
            {
                OrderStatus.SHIPPED,
                OrderStatus.COMPLETED,
                OrderStatus.CANCELLED,
                OrderStatus.REFUNDED,
            }
        ),
        OrderStatus.SHIPPED: frozenset(
            {OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
        ),
        OrderStatus.COMPLETED: frozenset(),
        OrderStatus.CANCELLED: frozenset(),
        OrderStatus.REFUNDED: frozenset(),
    }
)

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Entering one of these from a live order puts its stock back
RESTOCK_REASONS = MappingProxyType(
    {
        OrderStatus.CANCELLED: InventoryReason.ORDER_CANCELLED,
        OrderStatus.REFUNDED: InventoryReason.ORDER_REFUNDED,
    }
)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Re-applying the current status is always allowed."""
    current, target = OrderStatus(current), OrderStatus(target)
    return current == target or target in ALLOWED_TRANSITIONS[current]


def default_note(status: OrderStatus) -> str:
    return f"Status updated: {status.value}"


def append_timeline(
    order: Order,
    status: OrderStatus,
    note: Optional[str] = None,
    actor: Optional[str] = None,
) -> OrderTimelineEntry:
    """Append the next timeline entry; existing entries are never touched."""
    sequence = max((entry.sequence for entry in order.timeline), default=0) + 1
    entry = OrderTimelineEntry(
        sequence=sequence,
        status=status,
        note=note or default_note(status),
        actor=actor,
    )
    order.timeline.append(entry)
    return entry


async def restock_order(
    db: AsyncSession,
    order: Order,
    reason: InventoryReason,
    actor: Optional[str] = None,
    note: Optional[str] = None,
) -> None:
    """Credit every line of ``order`` back, one ledger row per line."""
    for item in order.items:
        await credit_stock(db, item.sku, item.quantity)
        record_inventory_change(
            db,
            product_id=item.product_id,
            sku=item.sku,
            quantity=item.quantity,
            reason=reason,
            ref_id=order.code,
            note=note,
            performed_by=actor,
        )
    logger.info(
        "Restocked %d line(s) of order %s (%s)",
        len(order.items),
        order.code,
        reason.value,
    )


async def transition_order(
    db: AsyncSession,
    order: Order,
    target: OrderStatus,
    note: Optional[str] = None,
    *,
    actor: Optional[str] = None,
) -> OrderTimelineEntry:
    """Move ``order`` to ``target`` with its side effects. Does not commit.

    Raises:
        InvalidTransition: ``target`` is not reachable from the current status.
    """
    target = OrderStatus(target)
    current = order.status
    if not can_transition(current, target):
        raise InvalidTransition(current, target)

    entry = append_timeline(order, target, note, actor)
    if target == current:
        logger.info("Order %s re-applied status %s", order.code, target.value)
        return entry

    order.status = target
    if target == OrderStatus.REFUNDED and order.payment_status == PaymentStatus.PAID:
        order.payment_status = PaymentStatus.REFUNDED

    reason = RESTOCK_REASONS.get(target)
    if reason is not None and current not in TERMINAL_STATUSES:
        await restock_order(db, order, reason, actor=actor, note=entry.note)

    logger.info(
        "Order %s: %s -> %s by %s",
        order.code,
        current.value,
        target.value,
        actor or "system",
    )
    return entry
