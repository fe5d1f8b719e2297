"""
tests/conftest.py -- Shared test fixtures for authgate.

This module provides:
  - make_settings(): Settings for tests (debug, bcrypt rounds=4, generous limits)
  - make_store(): PrincipalStore on an isolated shared-memory SQLite DB
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - make_client: factory fixture yielding TestClients with per-test settings
  - client: TestClient with generous rate limits for auth-flow tests
  - limited_client: TestClient with the reference 20/10/5 role limits

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each store gets a uuid-suffixed name so tests never share rows.

Every client gets fresh components (fresh rate-limit memory storage too), so
request budgets never leak between tests.
"""

from __future__ import annotations

import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

from api.main import app, install_components
from auth.store import PrincipalStore
from core.config import Settings

REFERENCE_LIMITS = {"admin": 20, "user": 10, "guest": 5}
GENEROUS_LIMITS = {"admin": 1000, "user": 1000, "guest": 1000}


def make_settings(**overrides) -> Settings:
    values = {
        "debug": True,
        "environment": "test",
        "secret_key": "test-secret-key-0123456789abcdef-0123456789",
        "bcrypt_rounds": 4,
        "role_limits": GENEROUS_LIMITS,
        "database_url": f"sqlite:///file:authgate_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true",
    }
    values.update(overrides)
    return Settings(**values)


def make_store(settings: Settings | None = None) -> PrincipalStore:
    return PrincipalStore(settings or make_settings())


def _patch_lifespan(settings: Settings, store: PrincipalStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        install_components(app, settings, store=store)
        yield

    return test_lifespan


@pytest.fixture
def make_client() -> Generator:
    """Factory: make_client(**settings_overrides) -> TestClient.

    Pass raise_server_exceptions=False to observe 500 responses produced by
    the catch-all handler instead of getting the exception re-raised.
    """
    opened: list[tuple[TestClient, PrincipalStore]] = []

    def _make(raise_server_exceptions: bool = True, **overrides) -> TestClient:
        settings = make_settings(**overrides)
        store = make_store(settings)
        app.router.lifespan_context = _patch_lifespan(settings, store)
        client = TestClient(app, raise_server_exceptions=raise_server_exceptions)
        client.__enter__()
        opened.append((client, store))
        return client

    yield _make

    for client, store in opened:
        client.__exit__(None, None, None)
        store.close()


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def limited_client(make_client) -> TestClient:
    return make_client(role_limits=REFERENCE_LIMITS)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store(settings) -> Generator[PrincipalStore, None, None]:
    s = make_store(settings)
    yield s
    s.close()
