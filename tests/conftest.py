from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient

from core import db
from main import app

import fakes


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def fake_tx(monkeypatch):
    monkeypatch.setattr(db, "transaction", fakes.fake_transaction)
    return fakes.FAKE_CONN


@pytest.fixture
def client():
    # No context manager: the lifespan (migrations, DB pool) does not run.
    return TestClient(app, raise_server_exceptions=False)


# --- integration (Docker) ---------------------------------------------------

TRUNCATE_SQL = "TRUNCATE reservations, book_authors, books, authors RESTART IDENTITY CASCADE"


@pytest.fixture(scope="session")
def postgres_url():
    try:
        from testcontainers.postgres import PostgresContainer

        container = PostgresContainer("postgres:16-alpine", driver=None)
        container.start()
    except Exception as exc:
        pytest.skip(f"PostgreSQL container unavailable: {exc}")

    try:
        yield container.get_connection_url()
    finally:
        container.stop()


@pytest.fixture(scope="session")
def api(postgres_url):
    overrides = {
        "DATABASE_URL": postgres_url,
        "DB_MIGRATE_ON_STARTUP": "true",
        "DB_POOL_MAX_SIZE": "12",
    }
    previous = {key: os.environ.get(key) for key in overrides}
    os.environ.update(overrides)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        for key, value in previous.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


@pytest.fixture
def live(api):
    """
    API client against a freshly truncated database.
    """
    api.portal.call(db.execute, TRUNCATE_SQL)
    return api
