"""Checkout and customer cancellation.

Each operation is one transaction covering the stock writes, their ledger rows
and the order itself: either all of it commits or none of it does.
Notifications go out only after the commit.
"""

import secrets
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.datetime_utils import current_year
from libs.common.logging import get_logger
from services.store_service.errors import (
    DuplicateOrderCode,
    InsufficientStock,
    OrderNotCancellable,
    ProductInactive,
    ProductNotFound,
    SkuNotFound,
    ValidationError,
)
from services.store_service.models import (
    InventoryReason,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingMethod,
)
from services.store_service.services.cart_ops import (
    compute_totals,
    empty_cart,
    find_cart,
)
from services.store_service.services.inventory_ledger import record_inventory_change
from services.store_service.services.notifications import (
    OrderNotifier,
    dispatch_notification,
    get_order_notifier,
)
from services.store_service.services.order_ops import commit_order_change, load_order
from services.store_service.services.order_status import (
    append_timeline,
    transition_order,
)
from services.store_service.services.permissions import (
    StoreAction,
    require_permission,
)
from services.store_service.services.stock_ops import debit_stock, find_product
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

CUSTOMER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.PAID})
MANUAL_REFUND_REMARK = "Payment was captured; refund must be processed manually."


@dataclass(frozen=True)
class CheckoutPolicy:
    """Rules that differ between the two ways of placing an order."""

    name: str
    require_sellable: bool
    apply_shipping_rule: bool


# Cart checkout only sells active products and charges shipping below the
# free-shipping threshold. Direct checkout does neither.
CART_CHECKOUT = CheckoutPolicy("cart", require_sellable=True, apply_shipping_rule=True)
DIRECT_CHECKOUT = CheckoutPolicy(
    "direct", require_sellable=False, apply_shipping_rule=False
)


@dataclass(frozen=True)
class RequestedLine:
    product_id: uuid.UUID
    sku: str
    quantity: int


@dataclass(frozen=True)
class CheckoutDetails:
    shipping_address: dict
    payment_method: PaymentMethod
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    coupon_code: Optional[str] = None


# ---------------------------------------------------------------------------
# Order codes
# ---------------------------------------------------------------------------


def generate_order_code(prefix: Optional[str] = None, year: Optional[int] = None) -> str:
    """``<PREFIX>-<YYYY>-<6 random digits>``, e.g. ``FSH-2024-004821``."""
    prefix = prefix or get_settings().ORDER_CODE_PREFIX
    return f"{prefix}-{year or current_year()}-{secrets.randbelow(1_000_000):06d}"


async def allocate_order_code(db: AsyncSession) -> str:
    """Pick a code not yet in use, giving up after a bounded number of draws.

    The unique index still has the last word: a code taken between this check
    and the insert surfaces as ``DuplicateOrderCode``.
    """
    code = ""
    for _ in range(get_settings().ORDER_CODE_MAX_ATTEMPTS):
        code = generate_order_code()
        taken = await db.scalar(select(Order.id).where(Order.code == code))
        if taken is None:
            return code
        logger.warning("Order code %s already taken, drawing another", code)
    raise DuplicateOrderCode(code)


# ---------------------------------------------------------------------------
# Placing orders
# ---------------------------------------------------------------------------


def _validate_request(lines: Sequence[RequestedLine], details: CheckoutDetails) -> None:
    if not lines:
        raise ValidationError("No items to check out")
    for line in lines:
        if not line.sku:
            raise ValidationError("Every item needs a SKU")
        if line.quantity < 1:
            raise ValidationError(f"Quantity for {line.sku} must be at least 1")
    if not details.shipping_address:
        raise ValidationError("Shipping address is required")
    if not details.payment_method:
        raise ValidationError("Payment method is required")


async def _place_order(
    db: AsyncSession,
    *,
    user: AuthUser,
    lines: Sequence[RequestedLine],
    details: CheckoutDetails,
    policy: CheckoutPolicy,
) -> Order:
    """Debit, price and create the order. The caller commits or rolls back."""
    code = await allocate_order_code(db)

    items: list[OrderItem] = []
    for position, line in enumerate(lines):
        product = await find_product(db, line.product_id)
        if product is None:
            raise ProductNotFound(line.product_id)
        if policy.require_sellable and not product.is_sellable:
            raise ProductInactive(product.id, product.name)
        variant = product.find_variant(line.sku)
        if variant is None:
            raise SkuNotFound(line.sku)
        if variant.stock < line.quantity:
            raise InsufficientStock(line.sku, line.quantity, variant.stock)

        # Always the live variant price; cart snapshots are display only
        unit_price = await debit_stock(db, variant, line.quantity)
        record_inventory_change(
            db,
            product_id=product.id,
            sku=variant.sku,
            quantity=-line.quantity,
            reason=InventoryReason.ORDER,
            ref_id=code,
            performed_by=user.user_id,
        )
        items.append(
            OrderItem(
                position=position,
                product_id=product.id,
                sku=variant.sku,
                name=product.name,
                image=variant.image or product.image,
                price=unit_price,
                quantity=line.quantity,
            )
        )

    totals = compute_totals(items, apply_shipping=policy.apply_shipping_rule)
    order = Order(
        code=code,
        user_id=user.user_id,
        customer_email=user.email,
        shipping_address=dict(details.shipping_address),
        shipping_method=details.shipping_method,
        coupon_code=details.coupon_code,
        subtotal=totals.subtotal,
        discount=totals.discount,
        shipping_fee=totals.shipping_fee,
        total=totals.total,
        status=OrderStatus.PENDING,
        payment_method=details.payment_method,
        payment_status=(
            PaymentStatus.PAID
            if details.payment_method == PaymentMethod.COD
            else PaymentStatus.PENDING
        ),
        items=items,
        timeline=[],
    )
    append_timeline(order, OrderStatus.PENDING, "Order placed", actor=user.user_id)
    db.add(order)

    try:
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateOrderCode(code) from exc
    return order


def _send_invoice(order: Order, user: AuthUser, notifier: Optional[OrderNotifier]) -> None:
    notifier = notifier or get_order_notifier()
    dispatch_notification(
        notifier.send_order_invoice,
        order,
        user,
        description=f"invoice for order {order.code}",
    )


async def checkout_from_cart(
    db: AsyncSession,
    *,
    user: AuthUser,
    details: CheckoutDetails,
    notifier: Optional[OrderNotifier] = None,
) -> Order:
    """Turn the user's cart into a pending order and empty the cart."""
    require_permission(user, StoreAction.CHECKOUT)

    try:
        cart = await find_cart(db, user.user_id)
        if cart is None or not cart.items:
            raise ValidationError("Cart is empty")
        lines = [
            RequestedLine(item.product_id, item.sku, item.quantity)
            for item in cart.items
        ]
        _validate_request(lines, details)

        order = await _place_order(
            db, user=user, lines=lines, details=details, policy=CART_CHECKOUT
        )
        empty_cart(cart)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Order %s placed from cart by %s: %d line(s), total %s",
        order.code,
        user.user_id,
        len(order.items),
        order.total,
    )
    _send_invoice(order, user, notifier)
    return order


async def checkout_direct(
    db: AsyncSession,
    *,
    user: AuthUser,
    lines: Sequence[RequestedLine],
    details: CheckoutDetails,
    notifier: Optional[OrderNotifier] = None,
) -> Order:
    """Place an order for an explicit item list, bypassing the cart."""
    require_permission(user, StoreAction.CHECKOUT)
    _validate_request(lines, details)

    try:
        order = await _place_order(
            db, user=user, lines=lines, details=details, policy=DIRECT_CHECKOUT
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Order %s placed directly by %s: %d line(s), total %s",
        order.code,
        user.user_id,
        len(order.items),
        order.total,
    )
    _send_invoice(order, user, notifier)
    return order


# ---------------------------------------------------------------------------
# Customer cancellation
# ---------------------------------------------------------------------------


async def cancel_order(
    db: AsyncSession,
    *,
    user: AuthUser,
    order_ref,
    reason: Optional[str] = None,
    notifier: Optional[OrderNotifier] = None,
) -> Order:
    """Cancel one of the caller's own orders while it is pending or paid.

    Stock goes back with ``order_cancelled`` ledger rows. A captured payment is
    marked refunded and the timeline entry flags the manual refund.
    """
    require_permission(user, StoreAction.CANCEL_OWN_ORDER)

    try:
        order = await load_order(db, order_ref, user_id=user.user_id, for_update=True)
        if order.status not in CUSTOMER_CANCELLABLE:
            raise OrderNotCancellable(order.code, order.status)

        note = f"Cancelled by customer: {reason}" if reason else "Cancelled by customer"
        refund_due = order.payment_status == PaymentStatus.PAID
        if refund_due:
            note = f"{note}. {MANUAL_REFUND_REMARK}"

        await transition_order(
            db, order, OrderStatus.CANCELLED, note, actor=user.user_id
        )
        if refund_due:
            order.payment_status = PaymentStatus.REFUNDED
        await commit_order_change(db)
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Order %s cancelled by customer %s%s",
        order.code,
        user.user_id,
        " (manual refund required)" if refund_due else "",
    )
    notifier = notifier or get_order_notifier()
    dispatch_notification(
        notifier.send_order_cancelled,
        order,
        user,
        reason,
        description=f"cancellation of order {order.code}",
    )
    return order
