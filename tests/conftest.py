"""
tests/conftest.py -- Shared test fixtures for the account service tests.

This module provides:
  - InlineExecutor: runs "background" session writes synchronously so tests
    can assert on the stored refresh token right after register/login
  - store / issuer / auth_service / admin_service: unit-level fixtures over a
    fresh in-memory SQLite store per test
  - make_user: helper that inserts a user with a known password
  - api_client: TestClient with a patched lifespan and an isolated store

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixture because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

DEBUG must be set before any auth/core import so get_settings() can
auto-generate the signing secrets instead of raising ValueError. BCRYPT_ROUNDS
is lowered to bcrypt's minimum to keep the suite fast.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Callable, Generator
from concurrent.futures import Executor, Future
from contextlib import asynccontextmanager
from datetime import date

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.admin import UserAdminService
from auth.models import Role, User, UserStatus
from auth.passwords import hash_password
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer

ACCESS_SECRET = "a" * 32 + "-access-test-secret"
REFRESH_SECRET = "r" * 32 + "-refresh-test-secret"

_db_counter = itertools.count()


class InlineExecutor(Executor):
    """Executor that runs each submitted call immediately on the caller's thread."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


@pytest.fixture
def auth_service(store: UserStore, issuer: TokenIssuer) -> AuthService:
    return AuthService(store, issuer, executor=InlineExecutor())


@pytest.fixture
def admin_service(store: UserStore) -> UserAdminService:
    return UserAdminService(store)


@pytest.fixture
def make_user(store: UserStore) -> Callable[..., User]:
    """Return a factory that inserts a user and returns the stored record."""

    def _make(
        email: str,
        password: str = "secret1",
        role: Role = Role.USER,
        status: UserStatus = UserStatus.ACTIVE,
        full_name: str = "Test User",
    ) -> User:
        user_id = store.create(
            User(
                full_name=full_name,
                birth_date=date(1990, 1, 1),
                email=email,
                hashed_password=hash_password(password),
                role=role,
                status=status,
            )
        )
        return store.find_by_id(user_id)

    return _make


# ---------------------------------------------------------------------------
# HTTP fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, issuer: TokenIssuer):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store, issuer and services into app.state so TestClient
    routes never touch the production database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.token_issuer = issuer
        app.state.auth_service = AuthService(user_store, issuer, executor=InlineExecutor())
        app.state.admin_service = UserAdminService(user_store)
        yield

    return test_lifespan


@pytest.fixture
def api_client() -> Generator[tuple[TestClient, UserStore, TokenIssuer], None, None]:
    """Yield (client, store, issuer) for API integration tests.

    Each test gets its own named shared-memory database, so tests do not see
    each other's users. An ADMIN account admin@example.com / admin123 exists
    before the client starts.
    """
    db_url = f"sqlite:///file:test_accounts_{next(_db_counter)}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url=db_url)
    issuer = TokenIssuer(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)
    user_store.create(
        User(
            full_name="Test Admin",
            birth_date=date(1990, 1, 1),
            email="admin@example.com",
            hashed_password=hash_password("admin123"),
            role=Role.ADMIN,
        )
    )

    app.router.lifespan_context = _patch_lifespan(user_store, issuer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store, issuer

    user_store.close()
