"""Unit tests for checkout and customer cancellation.

Stock and ledger state are always re-read with fresh queries; after a failed
checkout the session has been rolled back and loaded objects are expired.
"""

import re
import uuid
from decimal import Decimal

import pytest
from services.store_service.errors import (
    DuplicateOrderCode,
    InsufficientStock,
    OrderNotCancellable,
    OrderNotFound,
    ProductInactive,
    ProductNotFound,
    SkuNotFound,
    ValidationError,
)
from services.store_service.models import (
    Cart,
    CartItem,
    InventoryLog,
    InventoryReason,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ProductStatus,
    ProductVariant,
)
from services.store_service.services import checkout_ops
from services.store_service.services.cart_ops import add_item, find_cart
from services.store_service.services.checkout_ops import (
    CheckoutDetails,
    RequestedLine,
    allocate_order_code,
    cancel_order,
    checkout_direct,
    checkout_from_cart,
    generate_order_code,
)
from services.store_service.services.inventory_ledger import ledger_balance
from services.store_service.services.notifications import drain_notifications
from services.store_service.services.order_ops import update_order_status
from sqlalchemy import func, select
from tests.factories import (
    RecordingNotifier,
    VariantFactory,
    make_product,
    make_user,
    shipping_address,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _details(method=PaymentMethod.CARD, **overrides):
    defaults = {
        "shipping_address": shipping_address(),
        "payment_method": method,
    }
    defaults.update(overrides)
    return CheckoutDetails(**defaults)


async def _stage_cart(db, user_id, lines):
    """Insert a cart directly, skipping the add-to-cart stock checks."""
    cart = Cart(user_id=user_id, items=[])
    for position, (product_id, sku, quantity) in enumerate(lines):
        cart.items.append(
            CartItem(
                position=position,
                product_id=product_id,
                sku=sku,
                name="Snapshot name",
                price=Decimal("1"),
                quantity=quantity,
            )
        )
    db.add(cart)
    await db.commit()
    return cart


async def _stock(db, sku):
    return await db.scalar(select(ProductVariant.stock).where(ProductVariant.sku == sku))


async def _count(db, model):
    return await db.scalar(select(func.count(model.id)))


# ---------------------------------------------------------------------------
# Order codes
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_generate_order_code_format():
    code = generate_order_code(year=2024)

    assert re.fullmatch(r"FSH-2024-\d{6}", code)
    assert generate_order_code(prefix="TST", year=2030).startswith("TST-2030-")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_allocate_order_code_skips_taken_codes(db_session, tee, customer, notifier, monkeypatch):
    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(tee.id, "SKU-1", 1)],
        details=_details(),
    )
    draws = iter([order.code, "FSH-2026-000777"])
    monkeypatch.setattr(checkout_ops, "generate_order_code", lambda: next(draws))

    assert await allocate_order_code(db_session) == "FSH-2026-000777"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_exhausted_code_allocation_aborts_checkout(db_session, tee, customer, notifier, monkeypatch):
    product_id = tee.id
    first = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(product_id, "SKU-1", 1)],
        details=_details(),
    )
    taken = first.code
    monkeypatch.setattr(checkout_ops, "generate_order_code", lambda: taken)

    with pytest.raises(DuplicateOrderCode):
        await checkout_direct(
            db_session,
            user=customer,
            lines=[RequestedLine(product_id, "SKU-1", 1)],
            details=_details(),
        )

    assert await _stock(db_session, "SKU-1") == 4
    assert await _count(db_session, Order) == 1
    assert await _count(db_session, InventoryLog) == 1


# ---------------------------------------------------------------------------
# Cart checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cart_checkout_prices_debits_and_clears_cart(db_session, tee, customer, notifier):
    await add_item(
        db_session, user_id=customer.user_id, product_id=tee.id, sku="SKU-1", quantity=3
    )

    order = await checkout_from_cart(db_session, user=customer, details=_details())

    assert re.fullmatch(r"FSH-\d{4}-\d{6}", order.code)
    assert order.status == OrderStatus.PENDING
    assert order.subtotal == Decimal("300000")
    assert order.discount == 0
    assert order.shipping_fee == Decimal("30000")
    assert order.total == Decimal("330000")
    assert order.total == order.subtotal - order.discount + order.shipping_fee
    assert [(item.sku, item.quantity, item.price) for item in order.items] == [
        ("SKU-1", 3, Decimal("100000"))
    ]
    assert [entry.status for entry in order.timeline] == [OrderStatus.PENDING]
    assert order.payment_status == PaymentStatus.PENDING

    assert await _stock(db_session, "SKU-1") == 2
    logs = (await db_session.execute(select(InventoryLog))).scalars().all()
    assert len(logs) == 1
    assert (logs[0].sku, logs[0].quantity, logs[0].reason) == (
        "SKU-1",
        -3,
        InventoryReason.ORDER,
    )
    assert logs[0].ref_id == order.code

    cart = await find_cart(db_session, customer.user_id)
    assert cart.items == []
    assert cart.total == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cart_checkout_reprices_from_variant_not_snapshot(db_session, tee, customer, notifier):
    await _stage_cart(db_session, customer.user_id, [(tee.id, "SKU-1", 2)])

    order = await checkout_from_cart(db_session, user=customer, details=_details())

    assert order.items[0].price == Decimal("100000")
    assert order.items[0].name == tee.name
    assert order.subtotal == Decimal("200000")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cart_checkout_free_shipping_above_threshold(db_session, customer, notifier):
    product = await make_product(
        db_session, variants=[VariantFactory.create(sku="COAT-1", price=Decimal("600000"))]
    )
    await add_item(db_session, user_id=customer.user_id, product_id=product.id, sku="COAT-1")

    order = await checkout_from_cart(db_session, user=customer, details=_details())

    assert order.shipping_fee == 0
    assert order.total == Decimal("600000")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cart_checkout_insufficient_stock_changes_nothing(db_session, tee, customer, notifier):
    await _stage_cart(db_session, customer.user_id, [(tee.id, "SKU-1", 6)])

    with pytest.raises(InsufficientStock) as exc_info:
        await checkout_from_cart(db_session, user=customer, details=_details())

    assert "SKU-1" in exc_info.value.detail
    assert await _stock(db_session, "SKU-1") == 5
    assert await _count(db_session, Order) == 0
    assert await _count(db_session, InventoryLog) == 0
    cart = await find_cart(db_session, customer.user_id)
    assert len(cart.items) == 1
    await drain_notifications()
    assert notifier.sent == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cart_checkout_is_atomic_across_lines(db_session, customer, notifier):
    product = await make_product(
        db_session,
        variants=[
            VariantFactory.create(sku="OK-1", stock=10),
            VariantFactory.create(sku="LOW-1", stock=1),
        ],
    )
    await _stage_cart(
        db_session, customer.user_id, [(product.id, "OK-1", 4), (product.id, "LOW-1", 2)]
    )

    with pytest.raises(InsufficientStock):
        await checkout_from_cart(db_session, user=customer, details=_details())

    assert await _stock(db_session, "OK-1") == 10
    assert await _stock(db_session, "LOW-1") == 1
    assert await _count(db_session, Order) == 0
    assert await _count(db_session, InventoryLog) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cart_checkout_empty_cart_rejected(db_session, customer, notifier):
    with pytest.raises(ValidationError):
        await checkout_from_cart(db_session, user=customer, details=_details())

    await _stage_cart(db_session, customer.user_id, [])
    with pytest.raises(ValidationError):
        await checkout_from_cart(db_session, user=customer, details=_details())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cart_checkout_requires_shipping_address(db_session, tee, customer, notifier):
    await _stage_cart(db_session, customer.user_id, [(tee.id, "SKU-1", 1)])

    with pytest.raises(ValidationError):
        await checkout_from_cart(
            db_session, user=customer, details=_details(shipping_address={})
        )
    assert await _stock(db_session, "SKU-1") == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cart_checkout_rejects_inactive_product(db_session, customer, notifier):
    product = await make_product(
        db_session,
        status=ProductStatus.ARCHIVED,
        variants=[VariantFactory.create(sku="OLD-1")],
    )
    await _stage_cart(db_session, customer.user_id, [(product.id, "OLD-1", 1)])

    with pytest.raises(ProductInactive):
        await checkout_from_cart(db_session, user=customer, details=_details())
    assert await _stock(db_session, "OLD-1") == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cart_checkout_missing_product_or_sku(db_session, tee, customer, notifier):
    product_id = tee.id
    await _stage_cart(db_session, customer.user_id, [(uuid.uuid4(), "SKU-1", 1)])
    with pytest.raises(ProductNotFound):
        await checkout_from_cart(db_session, user=customer, details=_details())

    other = make_user("customer")
    await _stage_cart(db_session, other.user_id, [(product_id, "SKU-GONE", 1)])
    with pytest.raises(SkuNotFound):
        await checkout_from_cart(db_session, user=other, details=_details())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cod_orders_start_paid(db_session, tee, customer, notifier):
    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(tee.id, "SKU-1", 1)],
        details=_details(PaymentMethod.COD),
    )

    assert order.payment_status == PaymentStatus.PAID
    assert order.status == OrderStatus.PENDING


# ---------------------------------------------------------------------------
# Direct checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_direct_checkout_skips_shipping_and_leaves_cart(db_session, tee, customer, notifier):
    product_id = tee.id
    await add_item(db_session, user_id=customer.user_id, product_id=product_id, sku="SKU-1")

    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(product_id, "SKU-1", 2)],
        details=_details(),
    )

    assert order.subtotal == Decimal("200000")
    assert order.shipping_fee == 0
    assert order.total == Decimal("200000")
    assert await _stock(db_session, "SKU-1") == 3
    cart = await find_cart(db_session, customer.user_id)
    assert len(cart.items) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_direct_checkout_allows_inactive_products(db_session, customer, notifier):
    product = await make_product(
        db_session,
        status=ProductStatus.DRAFT,
        variants=[VariantFactory.create(sku="DRAFT-1")],
    )

    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(product.id, "DRAFT-1", 1)],
        details=_details(),
    )

    assert order.items[0].sku == "DRAFT-1"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_direct_checkout_validates_before_touching_stock(db_session, tee, customer, notifier):
    product_id = tee.id
    with pytest.raises(ValidationError):
        await checkout_direct(db_session, user=customer, lines=[], details=_details())
    with pytest.raises(ValidationError):
        await checkout_direct(
            db_session,
            user=customer,
            lines=[RequestedLine(product_id, "SKU-1", 0)],
            details=_details(),
        )
    assert await _stock(db_session, "SKU-1") == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stock_accounting_matches_order_quantities(db_session, customer, notifier):
    product = await make_product(
        db_session,
        variants=[
            VariantFactory.create(sku="MIX-1", stock=8),
            VariantFactory.create(sku="MIX-2", stock=3),
        ],
    )

    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[
            RequestedLine(product.id, "MIX-1", 5),
            RequestedLine(product.id, "MIX-2", 3),
        ],
        details=_details(),
    )

    assert await _stock(db_session, "MIX-1") == 3
    assert await _stock(db_session, "MIX-2") == 0
    assert sum(item.quantity for item in order.items) == 8
    assert await ledger_balance(db_session, order.code) == -8


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_restores_stock_and_nets_ledger_to_zero(db_session, tee, customer, notifier):
    await add_item(
        db_session, user_id=customer.user_id, product_id=tee.id, sku="SKU-1", quantity=3
    )
    order = await checkout_from_cart(db_session, user=customer, details=_details())

    cancelled = await cancel_order(
        db_session, user=customer, order_ref=order.code, reason="changed mind"
    )

    assert cancelled.status == OrderStatus.CANCELLED
    assert [entry.status for entry in cancelled.timeline] == [
        OrderStatus.PENDING,
        OrderStatus.CANCELLED,
    ]
    assert "changed mind" in cancelled.timeline[-1].note
    assert cancelled.payment_status == PaymentStatus.PENDING
    assert await _stock(db_session, "SKU-1") == 5

    restock = (
        await db_session.execute(
            select(InventoryLog).where(
                InventoryLog.reason == InventoryReason.ORDER_CANCELLED
            )
        )
    ).scalars().all()
    assert [(log.quantity, log.ref_id) for log in restock] == [(3, order.code)]
    assert await ledger_balance(db_session, order.code) == 0

    await drain_notifications()
    assert notifier.kinds() == ["invoice", "cancelled"]
    assert notifier.sent[-1][2] == "changed mind"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_by_id_of_paid_order_flags_manual_refund(db_session, tee, customer, notifier):
    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(tee.id, "SKU-1", 2)],
        details=_details(PaymentMethod.COD),
    )

    cancelled = await cancel_order(db_session, user=customer, order_ref=str(order.id))

    assert cancelled.payment_status == PaymentStatus.REFUNDED
    assert len(cancelled.timeline) == 2
    assert "refund must be processed manually" in cancelled.timeline[-1].note
    assert await _stock(db_session, "SKU-1") == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_completed_order_is_rejected(db_session, tee, customer, staff, notifier):
    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(tee.id, "SKU-1", 3)],
        details=_details(),
    )
    code = order.code
    for status in (OrderStatus.PAID, OrderStatus.COMPLETED):
        await update_order_status(db_session, actor=staff, order_ref=code, status=status)

    with pytest.raises(OrderNotCancellable):
        await cancel_order(db_session, user=customer, order_ref=code)

    assert await _stock(db_session, "SKU-1") == 2
    assert await ledger_balance(db_session, code) == -3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_shipped_order_is_rejected_for_customers(db_session, tee, customer, staff, notifier):
    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(tee.id, "SKU-1", 1)],
        details=_details(),
    )
    code = order.code
    for status in (OrderStatus.PAID, OrderStatus.SHIPPED):
        await update_order_status(db_session, actor=staff, order_ref=code, status=status)

    with pytest.raises(OrderNotCancellable):
        await cancel_order(db_session, user=customer, order_ref=code)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_is_scoped_to_the_owner(db_session, tee, customer, notifier):
    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(tee.id, "SKU-1", 1)],
        details=_details(),
    )
    code = order.code

    with pytest.raises(OrderNotFound):
        await cancel_order(db_session, user=make_user("customer"), order_ref=code)
    assert await _stock(db_session, "SKU-1") == 4


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_notification_failure_does_not_fail_checkout(db_session, tee, customer, caplog):
    failing = RecordingNotifier(fail=True)

    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(tee.id, "SKU-1", 1)],
        details=_details(),
        notifier=failing,
    )
    await drain_notifications()

    assert order.status == OrderStatus.PENDING
    assert await _count(db_session, Order) == 1
    assert "Failed to send invoice" in caplog.text


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invoice_sent_after_checkout(db_session, tee, customer, notifier):
    order = await checkout_direct(
        db_session,
        user=customer,
        lines=[RequestedLine(tee.id, "SKU-1", 1)],
        details=_details(),
    )
    await drain_notifications()

    assert notifier.sent == [("invoice", order.code, None)]
