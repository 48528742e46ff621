import os
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Optional overrides for local runs; tests default to in-memory SQLite
env_test_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db
from services.store_service import models as _store_models  # noqa: F401
from services.store_service.app.main import app
from services.store_service.services import notifications
from services.store_service.services.notifications import (
    drain_notifications,
    get_order_notifier,
)
from tests.factories import RecordingNotifier, VariantFactory, make_product, make_user

# Clear cached settings to reload with new env vars
get_settings.cache_clear()
settings = get_settings()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    """Fresh schema per test on a single shared connection."""
    if settings.DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            settings.DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    session = session_factory()
    try:
        yield session
    finally:
        await drain_notifications()
        await session.close()


@pytest.fixture
def notifier():
    recorder = RecordingNotifier()
    notifications.set_order_notifier(recorder)
    yield recorder
    notifications.set_order_notifier(None)


@pytest.fixture
def customer() -> AuthUser:
    return make_user("customer", user_id="customer-1")


@pytest.fixture
def staff() -> AuthUser:
    return make_user("staff", user_id="staff-1")


@pytest.fixture
def payment_service() -> AuthUser:
    return make_user("service_role", user_id="service:payments", email=None)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def tee(db_session):
    """``SKU-1`` priced 100000 with 5 in stock."""
    return await make_product(
        db_session,
        variants=[VariantFactory.create(sku="SKU-1", price=Decimal("100000"), stock=5)],
    )


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def store_client(db_session, notifier, customer) -> AsyncGenerator[AsyncClient, None]:
    """Client for the store app acting as ``customer`` unless overridden."""

    async def _get_db():
        yield db_session

    app.dependency_overrides[get_async_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: customer
    app.dependency_overrides[get_order_notifier] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
