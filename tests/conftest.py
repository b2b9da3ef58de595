"""
tests/conftest.py -- Shared test fixtures for ShellGate integration tests.

This module provides:
  - make_test_stores(): isolated in-memory credential store + audit sink
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - web_client: TestClient with follow_redirects=False for web route tests
  - api_client: TestClient plus a bearer token for API tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process.

DEBUG must be set before any auth/core import so get_settings() auto-generates
SECRET_KEY in dev mode instead of raising ValueError. The login rate limit is
raised so a test module's many logins never hit 429.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.audit import AuditSink
from auth.models import Credential
from auth.pipeline import AuthAuditPipeline
from auth.store import CredentialStore
from auth.tokens import create_access_token

ALICE = Credential(username="alice", secret="s3cret")


def make_test_stores(db_suffix: str) -> tuple[CredentialStore, AuditSink]:
    """Create a credential store and audit sink sharing one named in-memory DB.

    The store is seeded with ALICE. A random suffix keeps modules (and
    repeated fixture instantiations) from seeing each other's rows.
    """
    url = f"sqlite:///file:test_{db_suffix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    store = CredentialStore(url)
    sink = AuditSink(url)
    store.add_credential(ALICE)
    return store, sink


def _patch_lifespan(store: CredentialStore, sink: AuditSink):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.credential_store = store
        app.state.audit_sink = sink
        app.state.pipeline = AuthAuditPipeline(store, sink)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def web_client() -> Generator[tuple[TestClient, CredentialStore, AuditSink], None, None]:
    """Yield (client, store, sink) for web route tests.

    follow_redirects=False so tests can assert on redirect locations.
    """
    store, sink = make_test_stores("web")
    app.router.lifespan_context = _patch_lifespan(store, sink)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, store, sink
    store.close()
    sink.close()


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, AuditSink], None, None]:
    """Yield (client, token, sink) for API tests. token is a valid bearer JWT for alice."""
    store, sink = make_test_stores("api")
    app.router.lifespan_context = _patch_lifespan(store, sink)
    token = create_access_token(ALICE.username, expire_seconds=3600)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, sink
    store.close()
    sink.close()
