"""Shared pytest fixtures for all test suites."""

import os
from collections.abc import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool, StaticPool

from backend.app.db.models import Base
from backend.app.trips.inmemory import InMemoryTripPlanStore
from backend.app.trips.schema_cache import SchemaCapabilityCache
from backend.app.trips.sql_store import SqlTripPlanStore


@pytest.fixture
def sqlite_engine() -> Generator[Engine, None, None]:
    """In-memory sqlite engine shared across threads, with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def sql_session(sqlite_engine: Engine) -> Generator[Session, None, None]:
    with Session(sqlite_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def schema_cache() -> SchemaCapabilityCache:
    """Fresh schema cache so detection never leaks between schemas."""
    return SchemaCapabilityCache()


@pytest.fixture
def sql_store(sql_session: Session, schema_cache: SchemaCapabilityCache) -> SqlTripPlanStore:
    return SqlTripPlanStore(sql_session, schema_cache)


@pytest.fixture
def memory_store() -> InMemoryTripPlanStore:
    return InMemoryTripPlanStore()


@pytest.fixture
def postgres_engine() -> Generator[Engine, None, None]:
    """Create engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url or not database_url.startswith("postgresql"):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    engine = create_engine(database_url, poolclass=NullPool, echo=False)
    Base.metadata.create_all(engine)

    yield engine

    # Cleanup: drop all tables
    Base.metadata.drop_all(engine)
    engine.dispose()
