"""FastAPI application for the Store Service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.store_service.routers import (
    admin_inventory_router,
    admin_orders_router,
    cart_router,
    orders_router,
    payments_router,
)
from services.store_service.services.notifications import drain_notifications


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let in-flight order emails finish before the process exits
    await drain_notifications()


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    app = FastAPI(
        title="Store Service",
        version="0.1.0",
        description="Storefront order lifecycle: cart, checkout, orders, inventory ledger.",
        lifespan=lifespan,
    )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    # Add global exception handlers for consistent error responses
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # Customer routes (cart, checkout, orders, payment callback)
    app.include_router(cart_router, prefix="/store")
    app.include_router(orders_router, prefix="/store")
    app.include_router(payments_router, prefix="/store")

    # Admin routes (order management, inventory)
    app.include_router(admin_orders_router, prefix="/admin/store")
    app.include_router(admin_inventory_router, prefix="/admin/store")

    return app


app = create_app()
