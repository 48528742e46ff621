"""Customer notifications for order lifecycle events.

Sending is always best effort: it happens after the order transaction has
committed, on a background task, and a failure is only logged.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Protocol

from libs.auth.models import AuthUser
from libs.common.emails.client import EmailClient, get_email_client
from libs.common.logging import get_logger
from services.store_service.models import Order

logger = get_logger(__name__)


class OrderNotifier(Protocol):
    async def send_order_invoice(self, order: Order, user: AuthUser) -> None: ...

    async def send_order_cancelled(
        self, order: Order, user: AuthUser, reason: Optional[str]
    ) -> None: ...

    async def send_order_completed(self, order: Order, user: AuthUser) -> None: ...


def order_template_data(order: Order) -> dict[str, Any]:
    address = order.shipping_address or {}
    return {
        "customer_name": address.get("full_name"),
        "order_code": order.code,
        "status": order.status.value,
        "items": [
            {
                "name": item.name,
                "sku": item.sku,
                "quantity": item.quantity,
                "price": float(item.price),
            }
            for item in order.items
        ],
        "subtotal": float(order.subtotal),
        "discount": float(order.discount),
        "shipping_fee": float(order.shipping_fee),
        "total": float(order.total),
        "payment_method": order.payment_method.value,
        "shipping_address": ", ".join(
            str(address[key])
            for key in ("street", "ward", "district", "province")
            if address.get(key)
        ),
    }


def recipient_for(order: Order) -> AuthUser:
    """The customer behind ``order``, for flows driven by someone else."""
    return AuthUser(sub=order.user_id, email=order.customer_email)


class EmailOrderNotifier:
    """Sends order emails through the Communications Service."""

    def __init__(self, client: Optional[EmailClient] = None):
        self._client = client

    @property
    def client(self) -> EmailClient:
        return self._client or get_email_client()

    async def _send(self, template_type: str, user: AuthUser, data: dict) -> None:
        if not user.email:
            logger.info(
                "No email for user %s, skipping '%s'", user.user_id, template_type
            )
            return
        await self.client.send_template(
            template_type=template_type,
            to_email=user.email,
            template_data=data,
        )

    async def send_order_invoice(self, order: Order, user: AuthUser) -> None:
        await self._send("store_order_invoice", user, order_template_data(order))

    async def send_order_cancelled(
        self, order: Order, user: AuthUser, reason: Optional[str]
    ) -> None:
        data = order_template_data(order)
        data["reason"] = reason
        await self._send("store_order_cancelled", user, data)

    async def send_order_completed(self, order: Order, user: AuthUser) -> None:
        await self._send("store_order_completed", user, order_template_data(order))


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

_order_notifier: Optional[OrderNotifier] = None
_pending: set[asyncio.Task] = set()


def get_order_notifier() -> OrderNotifier:
    """FastAPI dependency returning the process-wide notifier."""
    global _order_notifier
    if _order_notifier is None:
        _order_notifier = EmailOrderNotifier()
    return _order_notifier


def set_order_notifier(notifier: Optional[OrderNotifier]) -> None:
    global _order_notifier
    _order_notifier = notifier


def dispatch_notification(
    send: Callable[..., Awaitable[None]], *args, description: str
) -> asyncio.Task:
    """Run ``send(*args)`` in the background; failures are logged, never raised."""

    async def _run() -> None:
        try:
            await send(*args)
        except Exception:
            logger.exception("Failed to send %s notification", description)

    task = asyncio.create_task(_run())
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def drain_notifications() -> None:
    """Wait for every notification still in flight."""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
