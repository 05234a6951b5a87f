"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; point them at a throwaway database first.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from decimal import Decimal
from typing import Callable, Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.core.rbac import UserRole
from backoffice.core.security import create_access_token
from backoffice.db.base import Base
from backoffice.db.session import get_db
from backoffice.main import app
# Import all models to ensure they're registered with Base.metadata
from backoffice.models import *
from backoffice.models.inventory_item import InventoryItem, InventoryType
from backoffice.models.supplier import Supplier
from backoffice.services.inventory_service import InventoryService

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiting during tests to avoid flaky failures
    from backoffice.core.rate_limit import limiter
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(user_id: int, role: UserRole) -> dict:
    token = create_access_token(
        data={"sub": str(user_id), "email": f"{role.value}@example.com", "role": role.value}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> dict:
    """Manager credentials: enough for every stock operation except rebuilds."""
    return _headers(2, UserRole.MANAGER)


@pytest.fixture
def staff_headers() -> dict:
    return _headers(3, UserRole.STAFF)


@pytest.fixture
def admin_headers() -> dict:
    return _headers(1, UserRole.ADMIN)


@pytest.fixture
def test_supplier(db_session: Session) -> Supplier:
    """Create a test supplier."""
    supplier = Supplier(
        name="Test Supplier",
        contact_phone="+1234567890",
        contact_email="supplier@example.com",
    )
    db_session.add(supplier)
    db_session.commit()
    db_session.refresh(supplier)
    return supplier


@pytest.fixture
def make_item(db_session: Session) -> Callable[..., InventoryItem]:
    """Factory for items whose opening stock is already on the ledger."""
    def _make(
        name: str = "House Lager",
        stock=0,
        inventory_type: InventoryType = InventoryType.BAR,
        **kwargs,
    ) -> InventoryItem:
        return InventoryService(db_session).create_item(
            name=name,
            inventory_type=inventory_type,
            opening_stock=Decimal(str(stock)),
            actor_id=1,
            **kwargs,
        )

    return _make


@pytest.fixture
def test_item(make_item) -> InventoryItem:
    """A bar item with 50 units in stock."""
    return make_item("House Lager", stock=50, unit="bottle", cost_per_unit=Decimal("2.50"))
