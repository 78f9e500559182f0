"""
tests/conftest.py -- Shared test fixtures for SecAudit integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users, sessions and tenant data
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient running the patched lifespan (one per test module)
  - new_client: factory for extra TestClients with their own cookie jar,
    sharing the app state started by api_client -- one per simulated user
  - register_user(): registers through the API and leaves the session cookie
    on the given client

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any app import:
  DEBUG=true                -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4           -- fast hashing
  RATE_LIMIT_ENABLED=false  -- many logins per module would trip the limit
"""

from __future__ import annotations

import asyncio
import itertools
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.sessions import SessionStore
from auth.store import UserStore
from tenant.store import TenantStore
from tenant.triggers import LoggingReportTrigger, LoggingScanTrigger

PASSWORD = "correct-horse"

_email_seq = itertools.count(1)


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}{next(_email_seq)}@example.com"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def memory_url(name: str) -> str:
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


def _make_test_stores(db_suffix: str) -> tuple[UserStore, SessionStore, TenantStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB names so test modules
                   don't share state.
    """
    user_store = UserStore(memory_url(f"test_users_{db_suffix}"))
    session_store = SessionStore(memory_url(f"test_sessions_{db_suffix}"))
    tenant_store = TenantStore(memory_url(f"test_tenant_{db_suffix}"))
    return user_store, session_store, tenant_store


def _patch_lifespan(user_store: UserStore, session_store: SessionStore, tenant_store: TenantStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.session_store = session_store
        app.state.tenant_store = tenant_store
        app.state.scan_trigger = LoggingScanTrigger()
        app.state.report_trigger = LoggingReportTrigger()
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------


def register_user(
    client: TestClient,
    email: str | None = None,
    password: str = PASSWORD,
    first_name: str = "Ada",
    last_name: str = "Lovelace",
) -> dict:
    """Register through the API. The client keeps the session cookie."""
    resp = client.post(
        "/api/v1/auth/register",
        json={
            "email": email or unique_email(),
            "password": password,
            "confirmPassword": password,
            "firstName": first_name,
            "lastName": last_name,
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one app lifespan per test module
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient running the real app against fresh in-memory stores.

    The store names come from the test module name, so every module starts
    from empty databases.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, session_store, tenant_store = _make_test_stores(suffix)
    app.router.lifespan_context = _patch_lifespan(user_store, session_store, tenant_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    session_store.close()
    tenant_store.close()
    user_store.close()


@pytest.fixture
def new_client(api_client) -> Callable[[], TestClient]:
    """Factory for additional clients, each with an independent cookie jar.

    Not used as context managers: the lifespan (and app.state) started by
    api_client is shared.
    """

    def _factory() -> TestClient:
        return TestClient(app, raise_server_exceptions=True)

    return _factory


@pytest.fixture
def stores(api_client) -> tuple[UserStore, SessionStore, TenantStore]:
    """The stores behind the running app, for direct setup and assertions."""
    state = api_client.app.state
    return state.user_store, state.session_store, state.tenant_store
