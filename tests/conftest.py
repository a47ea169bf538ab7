"""
Shared pytest fixtures for the unit bridge.

Every test gets its own SQLite database file, created with the same engine
hooks production uses (BEGIN IMMEDIATE, foreign keys, partial unique indexes).

Tests marked ``postgres`` also run against the PostgreSQL database named by
DATABASE_URL when it points at one; otherwise they are skipped.
"""

import os

from sqlalchemy.engine import make_url

_CONFIGURED_URL = os.getenv("DATABASE_URL", "")
POSTGRES_URL = (
    _CONFIGURED_URL
    if _CONFIGURED_URL and make_url(_CONFIGURED_URL).get_backend_name() == "postgresql"
    else None
)

# Must be set before unit_bridge is imported: the module-level engine is
# built from it.
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from unit_bridge.database import Base, create_bridge_engine, get_db, init_db
from unit_bridge.main import app
from unit_bridge.schemas import CreateUnitRequest
from unit_bridge.service import BridgeService


@pytest.fixture
def engine(tmp_path):
    engine = create_bridge_engine(f"sqlite:///{tmp_path / 'bridge.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def postgres_engine():
    """Fresh tables on the configured PostgreSQL database."""
    if POSTGRES_URL is None:
        pytest.skip("DATABASE_URL does not point at PostgreSQL")
    engine = create_bridge_engine(POSTGRES_URL)
    Base.metadata.drop_all(engine)
    init_db(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def service(db):
    return BridgeService(db)


@pytest.fixture
def client(session_factory):
    """HTTP client whose requests each get a session on the test database."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def unit_request():
    """Factory for CreateUnitRequest with sensible defaults."""

    def _make(**overrides) -> CreateUnitRequest:
        data = {
            "legacy_admin_id": 1,
            "legacy_building_id": 100,
            "building_name": "Tower A",
            "unit_type": "apartment",
            "unit_number": "12A",
            "floor_number": "1",
            "ownership_type": "individual",
        }
        data.update(overrides)
        return CreateUnitRequest(**data)

    return _make
