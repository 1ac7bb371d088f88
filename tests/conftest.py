"""
tests/conftest.py -- Shared test fixtures for Stockroom tests.

This module provides:
  - issuer: a TokenIssuer with a fixed test key
  - identity_store / catalog_store: fresh in-memory stores per test
  - _make_test_stores(): isolated shared-memory DBs for the API client
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus a bearer token for API integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API client because TestClient runs route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit-test fixtures stay on a single thread and use :memory:.

DEBUG must be set before any auth/core import so get_settings() can
auto-generate SECRET_KEY instead of raising ValueError. BCRYPT_ROUNDS=4 keeps
hashing fast; the cost factor does not change behavior.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Identity
from auth.service import IdentityService
from auth.store import IdentityStore
from auth.tokens import TokenIssuer, hash_password
from catalog.service import CatalogService
from catalog.store import CatalogStore

TEST_SECRET = "stockroom-test-signing-key-0123456789abcdef"


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def signing_key() -> str:
    return TEST_SECRET


@pytest.fixture
def issuer(signing_key: str) -> TokenIssuer:
    return TokenIssuer(signing_key, expire_seconds=3600)


@pytest.fixture
def identity_store() -> Generator[IdentityStore, None, None]:
    store = IdentityStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def catalog_store() -> Generator[CatalogStore, None, None]:
    store = CatalogStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def identity_service(identity_store: IdentityStore, issuer: TokenIssuer) -> IdentityService:
    return IdentityService(identity_store, issuer)


@pytest.fixture
def catalog_service(catalog_store: CatalogStore) -> CatalogService:
    return CatalogService(catalog_store)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[IdentityStore, CatalogStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    A uuid in the name keeps modules that run back to back from seeing each
    other's rows.
    """
    name = f"test_{db_suffix}_{uuid.uuid4().hex}"
    url = f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"
    return IdentityStore(url), CatalogStore(url)


def _patch_lifespan(identity_store: IdentityStore, catalog_store: CatalogStore, token_issuer: TokenIssuer):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.token_issuer = token_issuer
        app.state.identity_store = identity_store
        app.state.catalog_store = catalog_store
        app.state.identity_service = IdentityService(identity_store, token_issuer)
        app.state.catalog_service = CatalogService(catalog_store)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores.
    A user "testadmin" / "testpass123" exists before the client starts.
    """
    identity_store, catalog_store = _make_test_stores("api")
    token_issuer = TokenIssuer(TEST_SECRET, expire_seconds=3600)

    created = identity_store.insert(Identity(username="testadmin", hashed_password=hash_password("testpass123")))
    token = token_issuer.issue(created.id, created.username)

    app.router.lifespan_context = _patch_lifespan(identity_store, catalog_store, token_issuer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, created.id

    identity_store.close()
    catalog_store.close()
