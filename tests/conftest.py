"""Shared test fixtures for the SAP server test suite.

Provides:
- db_url: SQLite database file in the test's temp directory
- app: FastAPI app bound to db_url, with dummy Stripe/OpenRouter keys
- client: TestClient with the app's lifespan running
- with_repository: run a coroutine against a StatsRepository on db_url
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from sap_server.core.config import settings
from sap_server.core.database import build_engine, build_sessionmaker, init_models
from sap_server.main import create_app
from sap_server.services.repository import StatsRepository


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'sap.db'}"


@pytest.fixture
def app(db_url, monkeypatch):
    """Create a fresh application configured for testing."""
    monkeypatch.setattr(settings, "DATABASE_URL", db_url)
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test_dummy")
    monkeypatch.setattr(settings, "OPENROUTER_API_KEY", "or-test-key")
    monkeypatch.setattr(settings, "DOMAIN", "https://sap.test")
    return create_app()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def with_repository(db_url):
    """Run ``scenario(repository)`` in a fresh event loop and return its result.

    Tables are created first; the engine is disposed afterwards.
    """
    def run(scenario):
        async def main():
            engine = build_engine(db_url)
            try:
                await init_models(engine)
                return await scenario(StatsRepository(build_sessionmaker(engine)))
            finally:
                await engine.dispose()

        return asyncio.run(main())

    return run
