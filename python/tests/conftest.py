"""Pytest configuration and fixtures for messaging tests.

Test isolation strategy:
- DATABASE_URL set: tests share one PostgreSQL engine; every table is
  emptied after each test
- DATABASE_URL unset: each test gets a fresh SQLite file
- API tests use a real app with the shared-secret verifier and the test
  engine's session factory
"""

import os
from collections.abc import Generator
from pathlib import Path
from uuid import UUID

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from hundrednet.app import add_request_id_middleware, create_app
from hundrednet.auth.verifier import SharedSecretVerifier
from hundrednet.config import clear_settings_cache
from hundrednet.db.engine import create_db_engine
from hundrednet.db.models import Base
from hundrednet.db.session import create_session_factory
from tests.helpers import TEST_JWT_SECRET, create_test_user_id


@pytest.fixture(scope="session")
def postgres_engine() -> Generator[Engine | None, None, None]:
    """Session-wide PostgreSQL engine, or None when DATABASE_URL is unset."""
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        yield None
        return

    engine = create_db_engine(database_url)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def engine(postgres_engine: Engine | None, tmp_path: Path) -> Generator[Engine, None, None]:
    """Database engine for one test, with an empty schema."""
    if postgres_engine is not None:
        yield postgres_engine
        with postgres_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())
        return

    engine = create_db_engine(f"sqlite:///{tmp_path / 'messaging.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def requires_postgres(engine: Engine) -> None:
    """Skip tests that need real row locks and parallel writers."""
    if engine.dialect.name != "postgresql":
        pytest.skip("requires PostgreSQL (set DATABASE_URL)")


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a database session for service-level tests.

    Writes go through the services (which commit) or the factories (which
    commit), so the API under test sees them.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(session_factory: sessionmaker[Session]) -> FastAPI:
    """FastAPI app wired to the test database and the shared-secret verifier."""
    app = create_app(
        token_verifier=SharedSecretVerifier(secret=TEST_JWT_SECRET),
        session_factory=session_factory,
    )
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Authenticated-capable test client. Use auth_headers() per request."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def test_user_id() -> UUID:
    """Generate a random UUID for a test user."""
    return create_test_user_id()


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
