"""
tests/conftest.py -- Shared test fixtures for RailAuth unit and integration tests.

This module provides:
  - hasher: one cheap PasswordHasher (rounds=4) shared by the whole session
  - store / lifecycle: in-memory AccountStore and the lifecycle on top of it
  - api: TestClient wired to an isolated file-backed store, a fresh session
    registry and a seeded admin account, via a patched lifespan
  - cookie_header(): explicit Cookie header for a session id

Design: API tests use a SQLite file under tmp_path rather than :memory:.
TestClient runs sync route handlers in a thread pool, and an in-memory DB is
per-connection, so worker threads would see a blank schema.

Sessions are passed as an explicit Cookie header. An explicit header takes
precedence over the client's cookie jar, so tests can switch identities
without clearing the jar.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

# Set before any api/core import: TrustedHostMiddleware reads ALLOWED_HOSTS
# when api.main is imported, and TestClient sends Host: testserver.
os.environ.setdefault("ALLOWED_HOSTS", '["localhost", "127.0.0.1", "testserver"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.lifecycle import AccountLifecycle
from auth.models import Account, Role
from auth.passwords import PasswordHasher
from auth.sessions import SessionRegistry
from auth.store import AccountStore
from core.config import get_settings

ADMIN_PASSWORD = "adminpass123"


def cookie_header(session_id: str) -> dict[str, str]:
    return {"Cookie": f"{get_settings().session_cookie_name}={session_id}"}


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    """bcrypt at its minimum cost. Same algorithm, a fraction of the time."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def lifecycle(store: AccountStore, hasher: PasswordHasher) -> AccountLifecycle:
    return AccountLifecycle(store, hasher)


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, hasher: PasswordHasher, sessions: SessionRegistry):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test components into app.state so TestClient routes see
    the isolated test DB rather than the configured one. No purge task: the
    registry is fresh for every test.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.hasher = hasher
        app.state.sessions = sessions
        app.state.lifecycle = AccountLifecycle(store, hasher)
        yield

    return test_lifespan


@dataclass
class ApiHarness:
    client: TestClient
    lifecycle: AccountLifecycle
    sessions: SessionRegistry
    admin: Account
    admin_password: str = ADMIN_PASSWORD

    def cookie(self, session_id: str) -> dict[str, str]:
        return cookie_header(session_id)

    def session_for(self, account: Account) -> dict[str, str]:
        """Mint a session directly in the registry and return its Cookie header."""
        return cookie_header(self.sessions.create(account.id, account.role))

    @property
    def admin_headers(self) -> dict[str, str]:
        return self.session_for(self.admin)


@pytest.fixture
def api(tmp_path: Path, hasher: PasswordHasher) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness around a fresh app state.

    The admin account (username "root") exists before the client starts.
    """
    store = AccountStore(f"sqlite:///{tmp_path / 'auth.db'}")
    sessions = SessionRegistry()
    lifecycle = AccountLifecycle(store, hasher)
    admin = lifecycle.register("root", "root@rail.example", ADMIN_PASSWORD, Role.ADMIN)

    app.router.lifespan_context = _patch_lifespan(store, hasher, sessions)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, lifecycle=lifecycle, sessions=sessions, admin=admin)

    store.close()
