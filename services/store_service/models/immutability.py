"""Flush-time guards for records that must never be rewritten.

Ledger rows, order lines and timeline entries are insert-only. Orders may only
change their lifecycle columns; everything captured at checkout is frozen.
"""

from services.store_service.errors import ImmutableRecordError
from services.store_service.models.commerce import Order, OrderItem, OrderTimelineEntry
from services.store_service.models.inventory import InventoryLog
from sqlalchemy import event, inspect

MUTABLE_ORDER_FIELDS = frozenset(
    {
        "status",
        "payment_status",
        "payment_provider",
        "payment_transaction_id",
        "updated_at",
    }
)


def _reject_update(mapper, connection, target):
    raise ImmutableRecordError(f"{type(target).__name__} rows are append-only")


for _model in (InventoryLog, OrderItem, OrderTimelineEntry):
    event.listen(_model, "before_update", _reject_update)


@event.listens_for(Order, "before_update")
def _guard_frozen_order_fields(mapper, connection, target):
    state = inspect(target)
    changed = {
        attr.key
        for attr in state.attrs
        if attr.key in mapper.column_attrs and attr.history.has_changes()
    }
    frozen = changed - MUTABLE_ORDER_FIELDS
    if frozen:
        raise ImmutableRecordError(
            f"Order {target.code} fields are frozen after checkout: {sorted(frozen)}"
        )
