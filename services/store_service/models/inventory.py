"""Store inventory ledger: one immutable row per stock mutation."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import InventoryReason, enum_values
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

# Correlation id for stock changes made by staff outside any order
MANUAL_REF = "manual"


class InventoryLog(Base):
    """Audit trail for stock changes.

    ``ref_id`` is a loose string correlation (an order code, or ``manual``),
    not a foreign key: order lines outlive their products.
    """

    __tablename__ = "store_inventory_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    quantity: Mapped[int] = mapped_column(
        Integer, nullable=False
    )  # Positive = add, negative = subtract

    reason: Mapped[InventoryReason] = mapped_column(
        SAEnum(
            InventoryReason,
            values_callable=enum_values,
            name="store_inventory_reason_enum",
        ),
        nullable=False,
    )
    ref_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    performed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (Index("ix_store_inventory_logs_ref_id", "ref_id"),)

    def __repr__(self):
        return f"<InventoryLog {self.sku} {self.reason} qty={self.quantity}>"
