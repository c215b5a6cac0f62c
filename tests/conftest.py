"""Shared test fixtures and configuration."""
import pytest
import os
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DASHBOARD_PASSWORD", "testpass123")
os.environ.setdefault("STORE_NAME", "Test Store")

from storefront.main import app
from storefront.core.config import Settings
from storefront.db.database import get_db
from storefront.db.models import Base
from storefront.services.cart.local_cart import CartEvents, InMemoryStore
from storefront.services.cart.selector import CartSourceSelector
from storefront.services.checkout.assembler import SubmissionAssembler
from storefront.services.gateway.base import StoreGateway
from storefront.services.gateway.http import HttpStoreGateway
from storefront.services.pricing.models import LineItem


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_BASE_URL = "http://testserver"


@pytest.fixture
def test_settings():
    """Override settings for testing."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        store_name="Test Store",
        dashboard_password="testpass123",
        tax_rate=Decimal("0.08"),
    )


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(test_db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def override_get_db(test_db):
    """Override get_db dependency with test database."""
    async def _override_get_db():
        yield test_db
    return _override_get_db


@pytest.fixture
def clean_auth_sessions():
    """Clean up authentication sessions before and after tests."""
    from storefront.api import auth
    auth._sessions.clear()
    yield
    auth._sessions.clear()


@pytest.fixture
async def test_client(override_get_db, test_settings, clean_auth_sessions, monkeypatch):
    """Create an async HTTP client bound to the app, with overrides."""
    app.dependency_overrides[get_db] = override_get_db

    # Override settings in modules that use it
    monkeypatch.setattr("storefront.core.config.settings", test_settings)
    monkeypatch.setattr("storefront.api.auth.settings", test_settings)
    monkeypatch.setattr("storefront.api.health.settings", test_settings)
    monkeypatch.setattr("storefront.api.orders.settings", test_settings)
    monkeypatch.setattr("storefront.api.checkout.settings", test_settings)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url=TEST_BASE_URL) as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()


@pytest.fixture
async def authenticated_client(test_client, test_settings):
    """Client holding a valid admin session cookie."""
    response = await test_client.post(
        "/api/auth/login",
        json={"password": test_settings.dashboard_password}
    )
    assert response.status_code == 200

    # Session cookie is automatically stored in the client
    return test_client


@pytest.fixture
def gateway_factory(test_client):
    """Build HTTP gateways that talk to the app in-process."""
    def _factory(user_id=None):
        return HttpStoreGateway(test_client, user_id=user_id)
    return _factory


@pytest.fixture
def mock_gateway():
    """Store gateway whose every call is an AsyncMock."""
    return AsyncMock(spec=StoreGateway)


@pytest.fixture
def cart_events():
    return CartEvents()


@pytest.fixture
def guest_store():
    return InMemoryStore()


@pytest.fixture
def cart_selector(mock_gateway, guest_store, cart_events):
    return CartSourceSelector(mock_gateway, guest_store, "ekomart-cart", cart_events)


@pytest.fixture
def assembler(mock_gateway, test_settings, cart_selector):
    return SubmissionAssembler(mock_gateway, test_settings, cart_selector)


@pytest.fixture
def make_item():
    """Build line items with string prices."""
    def _make(product_ref="p1", price="10.00", quantity=1, name=None, **kwargs):
        return LineItem(
            product_ref=product_ref,
            name=name or f"Product {product_ref}",
            unit_price=Decimal(price),
            quantity=quantity,
            **kwargs,
        )
    return _make


@pytest.fixture
def inline_address():
    return {
        "kind": "inline",
        "name": "Rahim Uddin",
        "phone": "01700000000",
        "email": "rahim@example.com",
        "address": "12 Lake Road",
        "city": "Dhaka",
        "state": "",
        "zip_code": "1207",
        "country": "Bangladesh",
    }
