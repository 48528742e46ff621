"""Store Service models package."""

from services.store_service.models.catalog import Product, ProductVariant
from services.store_service.models.commerce import (
    Cart,
    CartItem,
    Order,
    OrderItem,
    OrderTimelineEntry,
)
from services.store_service.models.enums import (
    InventoryReason,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ProductStatus,
    ShippingMethod,
)
from services.store_service.models.inventory import (
    MANUAL_REF,
    InventoryLog,
)
from services.store_service.models import immutability  # noqa: F401

__all__ = [
    "Cart",
    "CartItem",
    "InventoryLog",
    "InventoryReason",
    "MANUAL_REF",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderTimelineEntry",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
    "ProductStatus",
    "ProductVariant",
    "ShippingMethod",
]
