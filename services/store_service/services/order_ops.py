"""Order reads, staff status updates and payment results."""

import uuid
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from services.store_service.errors import ConcurrentUpdate, OrderNotFound
from services.store_service.models import Order, OrderStatus, PaymentStatus
from services.store_service.services.notifications import (
    OrderNotifier,
    dispatch_notification,
    get_order_notifier,
    recipient_for,
)
from services.store_service.services.order_status import (
    TERMINAL_STATUSES,
    transition_order,
)
from services.store_service.services.permissions import (
    StoreAction,
    require_permission,
)
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def load_order(
    db: AsyncSession,
    order_ref,
    *,
    user_id: Optional[str] = None,
    for_update: bool = False,
) -> Order:
    """Find an order by id or code, optionally scoped to its owner.

    Raises:
        OrderNotFound: no match, or the order belongs to someone else.
    """
    ref = str(order_ref)
    try:
        condition = or_(Order.id == uuid.UUID(ref), Order.code == ref)
    except ValueError:
        condition = Order.code == ref

    query = select(Order).where(condition)
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query.execution_options(populate_existing=True))
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound(ref)
    return order


async def get_order_for_user(db: AsyncSession, user: AuthUser, order_ref) -> Order:
    return await load_order(db, order_ref, user_id=user.user_id)


async def list_orders_for_user(
    db: AsyncSession,
    user: AuthUser,
    *,
    status: Optional[OrderStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Order]:
    """The caller's orders, newest first."""
    query = select(Order).where(Order.user_id == user.user_id)
    if status:
        query = query.where(Order.status == status)
    query = query.order_by(Order.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_orders(
    db: AsyncSession,
    *,
    actor: AuthUser,
    status: Optional[OrderStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Order], int]:
    """All orders for staff, newest first, with the unpaginated total."""
    require_permission(actor, StoreAction.VIEW_ALL_ORDERS)

    query = select(Order)
    count_query = select(func.count(Order.id))
    if status:
        query = query.where(Order.status == status)
        count_query = count_query.where(Order.status == status)

    total = await db.scalar(count_query) or 0
    query = (
        query.order_by(Order.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def commit_order_change(db: AsyncSession) -> None:
    """Commit, reporting a lost timeline race as ``ConcurrentUpdate``."""
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConcurrentUpdate() from exc


async def update_order_status(
    db: AsyncSession,
    *,
    actor: AuthUser,
    order_ref,
    status: OrderStatus,
    note: Optional[str] = None,
    notifier: Optional[OrderNotifier] = None,
) -> Order:
    """Staff-driven status change, restocking on cancel/refund."""
    require_permission(actor, StoreAction.UPDATE_ORDER_STATUS)
    status = OrderStatus(status)

    try:
        order = await load_order(db, order_ref, for_update=True)
        previous = order.status
        entry = await transition_order(db, order, status, note, actor=actor.user_id)
        await commit_order_change(db)
    except Exception:
        await db.rollback()
        raise

    if previous != status:
        notifier = notifier or get_order_notifier()
        customer = recipient_for(order)
        if status == OrderStatus.COMPLETED:
            dispatch_notification(
                notifier.send_order_completed,
                order,
                customer,
                description=f"completion of order {order.code}",
            )
        elif status == OrderStatus.CANCELLED:
            dispatch_notification(
                notifier.send_order_cancelled,
                order,
                customer,
                entry.note,
                description=f"cancellation of order {order.code}",
            )
    return order


async def record_payment_result(
    db: AsyncSession,
    *,
    actor: AuthUser,
    order_code: str,
    success: bool,
    transaction_id: Optional[str] = None,
    provider: Optional[str] = None,
    message: Optional[str] = None,
) -> Order:
    """Apply a payment gateway result to an order.

    Success marks the payment paid and moves a pending order to ``paid``.
    Failure marks it failed and leaves a note on the timeline. Results for
    finished orders and repeated successes change nothing.
    """
    require_permission(actor, StoreAction.RECORD_PAYMENT)

    try:
        order = await load_order(db, order_code, for_update=True)

        if order.status in TERMINAL_STATUSES:
            logger.warning(
                "Ignoring payment result for order %s in status %s",
                order.code,
                order.status.value,
            )
            await db.commit()
            return order

        already_paid = order.payment_status == PaymentStatus.PAID
        if success and already_paid and order.status != OrderStatus.PENDING:
            logger.info("Duplicate payment confirmation for order %s", order.code)
            await db.commit()
            return order
        if not success and already_paid:
            logger.warning(
                "Ignoring payment failure for already paid order %s", order.code
            )
            await db.commit()
            return order

        if transaction_id:
            order.payment_transaction_id = transaction_id
        if provider:
            order.payment_provider = provider

        if success:
            order.payment_status = PaymentStatus.PAID
            if order.status == OrderStatus.PENDING:
                await transition_order(
                    db,
                    order,
                    OrderStatus.PAID,
                    message or "Payment confirmed",
                    actor=actor.user_id,
                )
        else:
            order.payment_status = PaymentStatus.FAILED
            await transition_order(
                db,
                order,
                order.status,
                f"Payment failed: {message}" if message else "Payment failed",
                actor=actor.user_id,
            )

        await commit_order_change(db)
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Payment %s for order %s (txn %s)",
        "confirmed" if success else "failed",
        order.code,
        order.payment_transaction_id,
    )
    return order
