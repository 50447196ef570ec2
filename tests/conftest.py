"""
tests/conftest.py -- Shared test fixtures for AccountGate.

This module provides:
  - store / issuer / manager: isolated in-memory components for unit tests
  - FrozenClock: a settable clock for token expiry tests
  - api_client: TestClient over the real app with an isolated user store

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

DEBUG and BCRYPT_ROUNDS must be set before any api/auth/core import so
get_settings() auto-generates signing secrets and bcrypt stays fast.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set before any core import so get_settings() can auto-generate
# SECRET_KEY / REFRESH_SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_session_manager
from auth.passwords import PasswordHasher
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenIssuer
from auth.validation import PasswordPolicy

ACCESS_SECRET = "a" * 32 + "-access-test-secret"
REFRESH_SECRET = "r" * 32 + "-refresh-test-secret"


class FrozenClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=10),
    )


@pytest.fixture
def issuer(token_config: TokenConfig, clock: FrozenClock) -> TokenIssuer:
    return TokenIssuer(token_config, clock=clock)


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def manager(store: UserStore, issuer: TokenIssuer, hasher: PasswordHasher) -> SessionManager:
    return SessionManager(store=store, issuer=issuer, hasher=hasher, policy=PasswordPolicy(min_length=8))


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore):
    """Return a lifespan that wires a pre-created test store into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.session_manager, app.state.token_issuer = build_session_manager(user_store)
        yield

    return test_lifespan


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient backed by a fresh, isolated in-memory user store.

    Session cookies are issued with secure=True, so the client (talking plain
    http to testserver) never echoes them back. Tests pass tokens explicitly.
    """
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url)
    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    user_store.close()
