"""Unit tests for order emails and background dispatch."""

from decimal import Decimal

import pytest
from services.store_service.models import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
)
from services.store_service.services.notifications import (
    EmailOrderNotifier,
    dispatch_notification,
    drain_notifications,
    order_template_data,
    recipient_for,
)
from tests.factories import make_user, shipping_address


class FakeEmailClient:
    def __init__(self):
        self.calls = []

    async def send_template(self, template_type, to_email, template_data):
        self.calls.append((template_type, to_email, template_data))


def _order(**overrides):
    defaults = {
        "code": "FSH-2026-000042",
        "user_id": "customer-1",
        "customer_email": "customer-1@example.com",
        "shipping_address": shipping_address(),
        "subtotal": Decimal("200000"),
        "discount": Decimal("0"),
        "shipping_fee": Decimal("30000"),
        "total": Decimal("230000"),
        "status": OrderStatus.PENDING,
        "payment_method": PaymentMethod.CARD,
        "items": [
            OrderItem(
                position=0,
                sku="SKU-1",
                name="Tee",
                price=Decimal("100000"),
                quantity=2,
            )
        ],
    }
    defaults.update(overrides)
    return Order(**defaults)


@pytest.mark.unit
def test_order_template_data():
    data = order_template_data(_order())

    assert data["order_code"] == "FSH-2026-000042"
    assert data["customer_name"] == "Test Customer"
    assert data["total"] == 230000.0
    assert data["items"] == [
        {"name": "Tee", "sku": "SKU-1", "quantity": 2, "price": 100000.0}
    ]
    assert data["shipping_address"] == "12 Test Street, Ward 1, District 1, Test Province"


@pytest.mark.unit
def test_recipient_for_uses_order_contact():
    recipient = recipient_for(_order())

    assert recipient.user_id == "customer-1"
    assert recipient.email == "customer-1@example.com"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_email_notifier_sends_templates():
    client = FakeEmailClient()
    notifier = EmailOrderNotifier(client=client)
    order = _order()
    user = make_user(user_id="customer-1")

    await notifier.send_order_invoice(order, user)
    await notifier.send_order_cancelled(order, user, "changed mind")
    await notifier.send_order_completed(order, user)

    assert [call[0] for call in client.calls] == [
        "store_order_invoice",
        "store_order_cancelled",
        "store_order_completed",
    ]
    assert {call[1] for call in client.calls} == {"customer-1@example.com"}
    assert client.calls[1][2]["reason"] == "changed mind"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_email_notifier_skips_users_without_email():
    client = FakeEmailClient()

    await EmailOrderNotifier(client=client).send_order_invoice(
        _order(), make_user(email=None)
    )

    assert client.calls == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_logs_failures_instead_of_raising(caplog):
    async def _boom(code):
        raise RuntimeError(f"smtp down for {code}")

    task = dispatch_notification(_boom, "FSH-1", description="invoice for order FSH-1")
    await drain_notifications()

    assert task.done()
    assert task.exception() is None
    assert "Failed to send invoice for order FSH-1 notification" in caplog.text


@pytest.mark.asyncio
@pytest.mark.unit
async def test_drain_waits_for_pending_sends():
    sent = []

    async def _send(code):
        sent.append(code)

    for code in ("A", "B"):
        dispatch_notification(_send, code, description=code)
    await drain_notifications()

    assert sorted(sent) == ["A", "B"]
