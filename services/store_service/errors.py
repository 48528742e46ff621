"""Store domain errors.

Everything raised inside a checkout, cancellation or status transaction is a
``StoreError``; the orchestrator rolls the session back before the error
reaches the API layer, which renders ``status_code`` and ``detail``.
"""

from libs.common.error_handler import ServiceError


class StoreError(ServiceError):
    """Base class for store business-rule failures."""


class ValidationError(StoreError):
    status_code = 400
    detail = "Invalid request"


class PermissionDenied(StoreError):
    status_code = 403
    detail = "You are not allowed to perform this action"


class ProductNotFound(StoreError):
    status_code = 404

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class ProductInactive(StoreError):
    status_code = 400

    def __init__(self, product_id, name: str | None = None):
        self.product_id = product_id
        super().__init__(f"Product {name or product_id} is not available for sale")


class SkuNotFound(StoreError):
    status_code = 404

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU {sku} not found")


class InsufficientStock(StoreError):
    status_code = 409

    def __init__(self, sku: str, requested: int, available: int | None = None):
        self.sku = sku
        self.requested = requested
        self.available = available
        if available is None:
            detail = f"SKU {sku} does not have {requested} in stock"
        else:
            detail = f"SKU {sku} has only {available} in stock ({requested} requested)"
        super().__init__(detail)


class CartItemNotFound(StoreError):
    status_code = 404

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU {sku} is not in the cart")


class OrderNotFound(StoreError):
    status_code = 404

    def __init__(self, order_ref: str):
        self.order_ref = order_ref
        super().__init__(f"Order {order_ref} not found")


class InvalidTransition(StoreError):
    status_code = 409

    def __init__(self, current, target, detail: str | None = None):
        self.current = current
        self.target = target
        super().__init__(
            detail
            or f"Cannot change order status from {_value(current)} to {_value(target)}"
        )


class OrderNotCancellable(InvalidTransition):
    def __init__(self, order_code: str, current):
        self.order_code = order_code
        super().__init__(
            current,
            "cancelled",
            f"Order {order_code} can no longer be cancelled (status: {_value(current)})",
        )


class DuplicateOrderCode(StoreError):
    status_code = 409

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Order code {code} is already taken, please retry")


class ConcurrentUpdate(StoreError):
    status_code = 409
    detail = "The order was modified by another request, please retry"


class ImmutableRecordError(StoreError):
    status_code = 500
    detail = "Attempted to modify an immutable record"


def _value(status) -> str:
    return getattr(status, "value", status)
