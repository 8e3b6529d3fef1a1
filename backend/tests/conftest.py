"""
Pytest configuration and fixtures for backend tests.
"""

from tests.support import (
    ExplodingStockLedger,
    FakeStockLedger,
    TestingSessionLocal,
    engine,
    seed_floor,
)

import pytest
from fastapi.testclient import TestClient

from floor_api.main import app
from floor_api.models import Base
from floor_api.services.domain import (
    KitchenDispatchService,
    OrderSessionService,
    SessionQueryService,
    TableRegistryService,
)
from floor_api.services.floor_cache import FloorStateCache, get_floor_cache
from floor_api.services.stock import get_stock_ledger
from shared.infrastructure.db import get_db
from shared.infrastructure.metrics import get_metrics


@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics().reset()
    yield


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh schema per test on the shared in-memory engine.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def floor(db_session):
    """Seeded zones, tables, staff and products."""
    return seed_floor(db_session)


@pytest.fixture
def stock_ledger():
    return FakeStockLedger()


@pytest.fixture
def failing_stock_ledger():
    return FakeStockLedger(fail=True)


@pytest.fixture
def exploding_stock_ledger():
    return ExplodingStockLedger()


@pytest.fixture
def floor_cache():
    return FloorStateCache()


@pytest.fixture
def order_service(db_session, stock_ledger, floor_cache):
    return OrderSessionService(db_session, stock_ledger=stock_ledger, cache=floor_cache)


@pytest.fixture
def registry(db_session, floor_cache):
    return TableRegistryService(db_session, cache=floor_cache)


@pytest.fixture
def dispatch_service(db_session):
    return KitchenDispatchService(db_session)


@pytest.fixture
def query_service(db_session):
    return SessionQueryService(db_session)


@pytest.fixture(scope="function")
def client(db_session, stock_ledger, floor_cache):
    """
    Test client with database, stock ledger and floor cache overrides.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stock_ledger] = lambda: stock_ledger
    app.dependency_overrides[get_floor_cache] = lambda: floor_cache

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
