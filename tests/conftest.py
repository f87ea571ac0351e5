"""Pytest fixtures for testing."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from pharmacy_inventory.database import get_session
from pharmacy_inventory.domain.services.inventory_service import InventoryService
from pharmacy_inventory.main import app

FIXED_NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(name="session")
def session_fixture():
    """Create a fresh in-memory SQLite database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        yield session

    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Create test client with overridden database session."""

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)

    yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="service")
def service_fixture(session: Session) -> InventoryService:
    """Inventory service whose clock is pinned to FIXED_NOW."""
    return InventoryService(session, clock=lambda: FIXED_NOW)


@pytest.fixture(name="now")
def now_fixture() -> datetime:
    """The instant the ``service`` fixture's clock reports."""
    return FIXED_NOW
