"""
tests/conftest.py -- Shared test fixtures for InviteGate.

This module provides:
  - store: a RecordStore in a fresh tmp_path data directory, initialized
  - authority: a CredentialAuthority over that store with fixed test secrets
  - api_client: TestClient over the real app with an isolated store wired in
    through a patched lifespan (one client per test module)

The DEBUG env var must be set before any api/ import so get_settings() can
auto-generate secrets in dev mode instead of raising ValueError. The API
fixtures never use those generated secrets: the patched lifespan injects an
authority built with TEST_SECRET_KEY / TEST_PASSWORD_SALT.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.authority import CredentialAuthority
from records.store import RecordStore

TEST_SECRET_KEY = "test-secret-key-0123456789abcdef-0123456789abcdef"
TEST_PASSWORD_SALT = "test-salt"


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path) -> RecordStore:
    s = RecordStore(tmp_path / "data")
    s.initialize()
    return s


@pytest.fixture
def authority(store: RecordStore) -> CredentialAuthority:
    return CredentialAuthority(store, secret_key=TEST_SECRET_KEY, password_salt=TEST_PASSWORD_SALT)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: RecordStore, authority: CredentialAuthority):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-created test store and authority into app.state so routes
    never touch the DATA_DIR configured for the process.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.authority = authority
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory) -> Generator[tuple[TestClient, CredentialAuthority], None, None]:
    """Yield (client, authority) for API integration tests.

    The authority is returned so tests can inspect the store behind the API
    (audit entries, invitation state) and seed data directly.
    """
    s = RecordStore(tmp_path_factory.mktemp("api-data"))
    s.initialize()
    auth = CredentialAuthority(s, secret_key=TEST_SECRET_KEY, password_salt=TEST_PASSWORD_SALT)

    app.router.lifespan_context = _patch_lifespan(s, auth)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, auth
