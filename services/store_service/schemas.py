"""Pydantic schemas for store service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.store_service.models import (
    InventoryReason,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingMethod,
)

# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemCreate(BaseModel):
    product_id: uuid.UUID
    sku: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseModel):
    # Zero or less removes the line
    quantity: int


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: uuid.UUID
    sku: str
    name: str
    price: Decimal
    image: Optional[str]
    quantity: int


class CartResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    coupon_code: Optional[str]
    items: list[CartItemResponse] = []

    subtotal: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    shipping_fee: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    updated_at: datetime


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class ShippingAddress(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1, max_length=30)
    street: str = Field(..., min_length=1, max_length=255)
    ward: Optional[str] = Field(None, max_length=100)
    district: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)


class CheckoutRequest(BaseModel):
    """Checkout the caller's cart."""

    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    coupon_code: Optional[str] = Field(None, max_length=50)


class DirectCheckoutItem(BaseModel):
    # Any client-sent price is dropped; orders are priced from the variant
    model_config = ConfigDict(extra="ignore")

    product_id: uuid.UUID
    sku: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., ge=1)


class DirectCheckoutRequest(CheckoutRequest):
    """Buy an explicit list of items without touching the cart."""

    items: list[DirectCheckoutItem] = Field(..., min_length=1)


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: uuid.UUID
    sku: str
    name: str
    image: Optional[str]
    price: Decimal
    quantity: int
    line_total: Decimal


class OrderTimelineEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    status: OrderStatus
    note: Optional[str]
    actor: Optional[str]
    at: datetime


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    user_id: str
    status: OrderStatus

    shipping_address: dict
    shipping_method: ShippingMethod
    coupon_code: Optional[str]

    subtotal: Decimal
    discount: Decimal
    shipping_fee: Decimal
    total: Decimal

    payment_method: PaymentMethod
    payment_provider: Optional[str]
    payment_transaction_id: Optional[str]
    payment_status: PaymentStatus

    created_at: datetime
    updated_at: datetime

    items: list[OrderItemResponse] = []
    timeline: list[OrderTimelineEntryResponse] = []


class OrderListResponse(BaseModel):
    """Paginated order list."""

    items: list[OrderResponse]
    total: int
    page: int
    page_size: int


class OrderStatusUpdate(BaseModel):
    """Update order status (admin)."""

    status: OrderStatus
    note: Optional[str] = Field(None, max_length=500)


class PaymentCallback(BaseModel):
    """Result reported by the payment gateway integration."""

    order_code: str = Field(..., min_length=1, max_length=20)
    success: bool
    transaction_id: Optional[str] = Field(None, max_length=100)
    provider: Optional[str] = Field(None, max_length=50)
    message: Optional[str] = Field(None, max_length=500)


# ============================================================================
# INVENTORY SCHEMAS
# ============================================================================


class StockAdjustment(BaseModel):
    """Manual restock or correction (admin)."""

    sku: str = Field(..., min_length=1, max_length=100)
    quantity: int
    reason: InventoryReason = InventoryReason.ADJUSTMENT
    note: Optional[str] = Field(None, max_length=500)


class VariantStockResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: uuid.UUID
    sku: str
    price: Decimal
    stock: int


class InventoryLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    sku: str
    quantity: int
    reason: InventoryReason
    ref_id: Optional[str]
    note: Optional[str]
    performed_by: Optional[str]
    created_at: datetime


class LedgerBalanceResponse(BaseModel):
    ref_id: str
    sku: Optional[str] = None
    balance: int
