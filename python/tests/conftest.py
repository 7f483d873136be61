"""Pytest configuration and fixtures for Kindred tests.

Test isolation strategy:
- Every test gets a fresh database: SQLite in memory by default, or the
  database named by TEST_DATABASE_URL (schema created and dropped per test)
- The app is built with create_app() against that engine and a
  MockIdentityProvider, so no network access is needed
- Provider HTTP calls are mocked with respx
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from kindred.app import add_request_id_middleware, create_app
from kindred.auth.tokens import LocalTokenCodec
from kindred.config import Settings
from kindred.db.models import Base
from kindred.db.session import create_session_factory
from tests.support.test_identity import MockIdentityProvider

TEST_JWT_SECRET = "test-jwt-secret-that-is-long-enough-123"


def _create_test_engine() -> Engine:
    url = os.environ.get("TEST_DATABASE_URL")
    if url:
        return create_engine(url)
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Engine with a freshly created schema, dropped after the test."""
    engine = _create_test_engine()
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session for arranging and inspecting test data.

    Commit arranged rows before calling the API, and call expire_all()
    before re-reading rows the API changed.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings() -> Settings:
    """Settings for tests; provider keys set so chat reaches the mocked providers."""
    return Settings(
        kindred_env="test",
        database_url="sqlite://",
        jwt_secret=TEST_JWT_SECRET,
        clerk_jwks_url=None,
        clerk_issuer=None,
        clerk_secret_key=None,
        clerk_webhook_secret=None,
        openai_api_key="sk-test",
        gemini_api_key="gemini-test",
        cors_origins="*",
    )


@pytest.fixture
def identity_provider() -> MockIdentityProvider:
    return MockIdentityProvider()


@pytest.fixture
def app(
    settings: Settings, engine: Engine, identity_provider: MockIdentityProvider
) -> FastAPI:
    """Fully wired app: auth middleware, CORS and request-id middleware."""
    app = create_app(settings, engine=engine, identity_provider=identity_provider)
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def token_codec(app: FastAPI) -> LocalTokenCodec:
    return app.state.token_codec


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    """Use a low bcrypt work factor so registration tests stay fast."""
    monkeypatch.setattr("kindred.services.passwords.BCRYPT_ROUNDS", 4)
