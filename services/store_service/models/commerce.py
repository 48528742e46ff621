"""Store commerce models: carts, orders, order lines and the status timeline."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingMethod,
    enum_values,
)
from sqlalchemy import JSON, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

JsonDocument = JSON().with_variant(JSONB(), "postgresql")

# ============================================================================
# CART MODELS
# ============================================================================


class Cart(Base):
    """Shopping carts, one per user."""

    __tablename__ = "store_carts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    coupon_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Derived from the items after every mutation
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default="0"
    )
    discount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default="0"
    )
    shipping_fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default="0"
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default="0"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Relationships
    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.position",
    )

    def find_item(self, sku: str) -> Optional["CartItem"]:
        return next((item for item in self.items if item.sku == sku), None)

    def __repr__(self):
        return f"<Cart {self.id} user={self.user_id}>"


class CartItem(Base):
    """Cart line items with display snapshots taken when the line was added."""

    __tablename__ = "store_cart_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cart_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_carts.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    # Snapshots for rendering only; checkout re-prices from the variant
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    image: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint("cart_id", "sku", name="unique_cart_sku"),
        CheckConstraint("quantity > 0", name="cart_item_positive_quantity"),
    )

    # Relationships
    cart = relationship("Cart", back_populates="items")

    def __repr__(self):
        return f"<CartItem {self.sku} qty={self.quantity}>"


# ============================================================================
# ORDER MODELS
# ============================================================================


class Order(Base):
    """Orders: a frozen snapshot of a checkout plus its lifecycle state.

    Only ``status``, the timeline and the ``payment_*`` columns change after
    creation.
    """

    __tablename__ = "store_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )

    # Customer
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # {"full_name", "phone", "street", "ward", "district", "province"}
    shipping_address: Mapped[dict] = mapped_column(JsonDocument, nullable=False)
    shipping_method: Mapped[ShippingMethod] = mapped_column(
        SAEnum(
            ShippingMethod,
            values_callable=enum_values,
            name="store_shipping_method_enum",
        ),
        default=ShippingMethod.STANDARD,
        server_default="standard",
    )
    coupon_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Pricing, computed once from variant prices at checkout
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default="0"
    )
    shipping_fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default="0"
    )
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="store_order_status_enum",
        ),
        default=OrderStatus.PENDING,
        server_default="pending",
        index=True,
    )

    # Payment sub-record
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            values_callable=enum_values,
            name="store_payment_method_enum",
        ),
        nullable=False,
    )
    payment_provider: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(100), index=True, nullable=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            values_callable=enum_values,
            name="store_payment_status_enum",
        ),
        default=PaymentStatus.PENDING,
        server_default="pending",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.position",
    )
    timeline = relationship(
        "OrderTimelineEntry",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderTimelineEntry.sequence",
    )

    def __repr__(self):
        return f"<Order {self.code} status={self.status}>"


class OrderItem(Base):
    """Order line items (snapshot at order time)."""

    __tablename__ = "store_order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Loose reference: the product may change or disappear later
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    image: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="order_item_positive_quantity"),
    )

    # Relationships
    order = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def __repr__(self):
        return f"<OrderItem {self.sku} qty={self.quantity}>"


class OrderTimelineEntry(Base):
    """One accepted status transition. Insert-only, keyed by (order, sequence)."""

    __tablename__ = "store_order_timeline"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="store_order_status_enum",
        ),
        nullable=False,
    )
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    actor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint("order_id", "sequence", name="unique_order_timeline_sequence"),
    )

    # Relationships
    order = relationship("Order", back_populates="timeline")

    def __repr__(self):
        return f"<OrderTimelineEntry #{self.sequence} {self.status}>"
