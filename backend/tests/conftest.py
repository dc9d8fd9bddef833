"""
Pytest configuration and fixtures for backend tests.
"""

import asyncio
import os

# Settings are read at import time, configure before importing the app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SMS_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["SEED_ON_STARTUP"] = "false"
os.environ["PAYMOB_HMAC_SECRET"] = ""
os.environ["ADMIN_API_KEY"] = "test-admin-key"

import pytest
from fastapi.testclient import TestClient

from shared.config.constants import OrderMode
from shared.infrastructure.db import SessionLocal, engine, get_db
from shop_api.main import app
from shop_api.models import Base, Flavor, Kitchen, Product, Zone
from shop_api.services.domain import SiteSettings, StockService
from shop_api.services.payments import get_payment_gateway, paymob_breaker, sms_breaker
from tests.factories import FakeGateway


ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture(scope="function")
def client(db_session, fake_gateway):
    """
    Create a test client with database session and payment gateway overrides.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture(autouse=True)
def reset_breakers():
    """Circuit breakers are module level, start every test closed."""
    asyncio.run(paymob_breaker.reset())
    asyncio.run(sms_breaker.reset())
    yield


# =============================================================================
# Catalog fixtures
# =============================================================================


def _create_flavor(db_session, name: str, mini: int, medium: int, large: int) -> Flavor:
    flavor = Flavor(
        name=name,
        category="classic",
        mini_price_cents=2500,
        medium_price_cents=4500,
        large_price_cents=6500,
        stock_quantity_mini=mini,
        stock_quantity_medium=medium,
        stock_quantity_large=large,
    )
    db_session.add(flavor)
    db_session.flush()
    StockService(db_session).record_initial_stock(flavor, changed_by="test")
    db_session.commit()
    db_session.refresh(flavor)
    return flavor


@pytest.fixture
def seed_flavor(db_session):
    """Chocolate Chip: 10 mini, 10 medium, 2 large."""
    return _create_flavor(db_session, "Chocolate Chip", mini=10, medium=10, large=2)


@pytest.fixture
def seed_second_flavor(db_session):
    """Red Velvet: 5 of every size."""
    return _create_flavor(db_session, "Red Velvet", mini=5, medium=5, large=5)


@pytest.fixture
def seed_single_large(db_session):
    """Pack of one large cookie."""
    product = Product(
        name="Single Large Cookie",
        product_type="pack",
        is_pack=True,
        flavor_size="large",
        count=1,
        base_price_cents=0,
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def seed_mixed_box(db_session):
    """Pack of three cookies of any size, 10.00 base price."""
    product = Product(
        name="Mixed Box of 3",
        product_type="pack",
        is_pack=True,
        flavor_size=None,
        count=3,
        base_price_cents=1000,
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def seed_extra(db_session):
    """Non-pack product without flavor selections."""
    product = Product(
        name="Gift Wrapping",
        product_type="extra",
        is_pack=False,
        count=1,
        base_price_cents=1500,
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


# =============================================================================
# Logistics fixtures
# =============================================================================


@pytest.fixture
def seed_zone(db_session):
    zone = Zone(name="Zamalek", city="Cairo", delivery_fee_cents=3000)
    db_session.add(zone)
    db_session.commit()
    db_session.refresh(zone)
    return zone


@pytest.fixture
def seed_kitchen(db_session):
    kitchen = Kitchen(name="Zamalek Kitchen", capacity=10, phone="01000000001")
    db_session.add(kitchen)
    db_session.commit()
    db_session.refresh(kitchen)
    return kitchen


@pytest.fixture
def preorder_mode(db_session):
    SiteSettings(db_session).set_order_mode(OrderMode.PREORDER)
    return OrderMode.PREORDER
