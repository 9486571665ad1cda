"""Pytest fixtures for testing."""
import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.db.database import Base, get_db
from app.services.local_store import MemoryStore


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite engine shared by every connection in a test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def test_db(engine):
    """Create a test database session for each test."""
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    db = SessionLocal()

    yield db

    db.close()


@pytest.fixture
def local_store():
    """Empty side-channel store."""
    return MemoryStore()


@pytest.fixture(scope="function")
def test_client(engine, local_store):
    """Create a test client with in-memory database and store."""
    from app.main import app
    from app.routers.metrics import get_local_store

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_local_store] = lambda: local_store

    client = TestClient(app)

    yield client

    app.dependency_overrides.clear()
