"""Who may do what in the store, in one table."""

import enum

from services.store_service.errors import PermissionDenied


class StoreAction(str, enum.Enum):
    MANAGE_OWN_CART = "cart:manage_own"
    CHECKOUT = "order:checkout"
    CANCEL_OWN_ORDER = "order:cancel_own"
    VIEW_ALL_ORDERS = "order:view_all"
    UPDATE_ORDER_STATUS = "order:update_status"
    RECORD_PAYMENT = "payment:record"
    ADJUST_STOCK = "inventory:adjust"
    VIEW_INVENTORY_LOG = "inventory:view_log"


ACTION_ROLES: dict[StoreAction, frozenset[str]] = {
    StoreAction.MANAGE_OWN_CART: frozenset({"customer", "staff", "admin"}),
    StoreAction.CHECKOUT: frozenset({"customer", "staff", "admin"}),
    StoreAction.CANCEL_OWN_ORDER: frozenset({"customer", "staff", "admin"}),
    StoreAction.VIEW_ALL_ORDERS: frozenset({"staff", "admin"}),
    StoreAction.UPDATE_ORDER_STATUS: frozenset({"staff", "admin"}),
    StoreAction.RECORD_PAYMENT: frozenset({"service_role", "admin"}),
    StoreAction.ADJUST_STOCK: frozenset({"staff", "admin"}),
    StoreAction.VIEW_INVENTORY_LOG: frozenset({"staff", "admin"}),
}


def authorize(role: str, action: StoreAction) -> bool:
    return role in ACTION_ROLES.get(action, frozenset())


def require_permission(user, action: StoreAction) -> None:
    """Raise ``PermissionDenied`` unless ``user.role`` may perform ``action``."""
    if not authorize(user.role, action):
        raise PermissionDenied(f"Role '{user.role}' may not perform {action.value}")
