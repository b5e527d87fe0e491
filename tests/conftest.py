"""
tests/conftest.py -- Shared test fixtures for AccessDesk.

This module provides:
  - make_store(): isolated named shared-memory SQLite AccountStore
  - FakeCache: in-process CacheBackend that records calls
  - auth_service / token_manager: unit-level service fixtures
  - api_client: TestClient with patched lifespan, an admin and a regular user

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment variables must be set before any api/auth/core import so
get_settings() sees them:
  DEBUG=true           auto-generate token secrets instead of raising
  BCRYPT_ROUNDS=4      bcrypt minimum -- keeps the suite fast
  ALLOWED_HOSTS        TestClient sends Host: testserver
  LOGIN_RATE_LIMIT     high enough that login-heavy tests never hit 429
  USERS_RATE_LIMIT     same, for GET /users
  CACHE_ENABLED=false  lifespan must not probe a real cache service
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Any

# CRITICAL: set before any project import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("USERS_RATE_LIMIT", "1000/minute")
os.environ.setdefault("CACHE_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import Account, Role
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import AccountStore
from auth.tokens import TokenConfig, TokenManager

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"
USER_EMAIL = "user@example.com"
USER_PASSWORD = "userpass123"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_store(suffix: str | None = None) -> AccountStore:
    """Create an isolated named shared-memory AccountStore.

    Each call gets a unique DB name unless a suffix is supplied, so tests never
    see each other's rows.
    """
    name = suffix or uuid.uuid4().hex
    return AccountStore(db_url=f"sqlite:///file:test_accounts_{name}?mode=memory&cache=shared&uri=true")


class FakeCache:
    """In-process CacheBackend. Stores values as given and records every call."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.gets: list[str] = []
        self.sets: list[tuple[str, Any, int]] = []

    def get(self, key: str) -> Any | None:
        self.gets.append(key)
        return self.data.get(key)

    def set(self, key: str, value: Any, ttl: int) -> None:
        self.sets.append((key, value, ttl))
        self.data[key] = value


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_manager() -> TokenManager:
    return TokenManager(
        access=TokenConfig(secret="a" * 32 + "-access-test-secret", ttl_seconds=900),
        refresh=TokenConfig(secret="r" * 32 + "-refresh-test-secret", ttl_seconds=3600),
    )


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = make_store()
    yield s
    s.close()


@pytest.fixture
def auth_service(store: AccountStore, hasher: PasswordHasher, token_manager: TokenManager) -> AuthService:
    return AuthService(store=store, hasher=hasher, tokens=token_manager)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, tokens: TokenManager, cache: Any):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test collaborators into app.state so TestClient routes
    see isolated test DBs and an in-process cache instead of real services.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = store
        app.state.tokens = tokens
        app.state.auth_service = AuthService(store=store, hasher=PasswordHasher(rounds=4), tokens=tokens)
        app.state.cache = cache
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, dict[str, Any]], None, None]:
    """Yield (client, ctx) for API integration tests.

    ctx holds the store, the FakeCache, and the ids of a pre-created admin and
    regular user (credentials in ADMIN_* / USER_* constants). One client per
    test module keeps the suite fast; tests that mutate sessions log in fresh.
    """
    store = make_store()
    tokens = TokenManager(
        access=TokenConfig(secret="A" * 40, ttl_seconds=900),
        refresh=TokenConfig(secret="R" * 40, ttl_seconds=3600),
    )
    cache = FakeCache()
    pw = PasswordHasher(rounds=4)
    admin_id = store.create_account(
        Account(name="Test Admin", email=ADMIN_EMAIL, password_hash=pw.hash(ADMIN_PASSWORD), role=Role.ADMIN)
    )
    user_id = store.create_account(Account(name="Test User", email=USER_EMAIL, password_hash=pw.hash(USER_PASSWORD)))

    app.router.lifespan_context = _patch_lifespan(store, tokens, cache)
    # The limiter's in-memory counters outlive any one client.
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, {"store": store, "cache": cache, "tokens": tokens, "admin_id": admin_id, "user_id": user_id}

    store.close()


def login(client: TestClient, email: str, password: str) -> dict[str, Any]:
    """POST /auth/login and return the JSON body. Asserts success."""
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
