"""
tests/conftest.py -- Shared test fixtures for Turnstile.

This module provides:
  - clock: a FakeClock (tests/helpers.py) for lockout-expiry tests
  - stores / auth_engine: in-memory SQLite stores and an engine wired to them
  - api_client: module-scoped TestClient with a seeded admin session

Design: API tests use named shared-memory SQLite URIs (not plain :memory:)
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the process.

Environment must be set before any core/auth/api import:
  DEBUG=true          -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4     -- minimum bcrypt cost keeps the suite fast
  LOGIN_RATE_LIMIT    -- high enough that lockout tests are not throttled
  ALLOWED_HOSTS       -- TestClient sends Host: testserver
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set these before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "10000/minute")
os.environ.setdefault("EMAIL_CHECK_RATE_LIMIT", "10000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_state
from auth.service import AuthenticationEngine
from core.config import get_settings
from helpers import ADMIN_EMAIL, ADMIN_PASSWORD, FakeClock, Stores, make_engine, make_stores

# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Generator[Stores, None, None]:
    s = make_stores()
    yield s
    s.users.engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auth_engine(stores: Stores, clock: FakeClock) -> AuthenticationEngine:
    return make_engine(stores, clock)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    admin_token: str
    admin_id: str

    def admin_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.admin_token}"}


def _patch_lifespan(db_url: str):
    """Return a lifespan that wires in-memory stores into app.state.

    The purge_task is a long-sleeping coroutine so shutdown can .cancel() it
    just like the real one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        build_state(app, get_settings(), db_url=db_url)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()
        app.state.db_engine.dispose()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    One database per test module (named after the module) so modules do not
    see each other's users. The admin user holds the Admin role and its
    bearer token is issued through the real login path.
    """
    name = request.module.__name__.replace(".", "_")
    db_url = f"sqlite:///file:test_{name}?mode=memory&cache=shared&uri=true"
    app.router.lifespan_context = _patch_lifespan(db_url)

    with TestClient(app, raise_server_exceptions=True) as client:
        engine = app.state.auth_engine
        admin = engine.create_user(ADMIN_EMAIL, ADMIN_PASSWORD)
        app.state.role_manager.create_role(get_settings().admin_role)
        app.state.role_manager.assign(ADMIN_EMAIL, get_settings().admin_role)
        issued = engine.login(ADMIN_EMAIL, ADMIN_PASSWORD)
        yield ApiContext(client=client, admin_token=issued.token, admin_id=admin.id)
