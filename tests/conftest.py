"""
tests/conftest.py -- Shared fixtures for SessionWarden tests.

This module provides:
  - settings:        explicit Settings (no .env, fast bcrypt)
  - hasher / access_codec / refresh_codec: core components built from settings
  - sql_store:       UserStore on an isolated named shared-memory SQLite DB
  - memory_store:    InMemoryUserStore
  - store:           parametrized over both adapters -- every session test
                     runs against SQL and in-memory storage
  - manager / authenticator: the core wired to `store`
  - alice:           a registered principal with password "correct-pw"
  - api_client:      TestClient over create_app() with an injected store

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each fixture instance gets a unique name so tests never share state.
"""

from __future__ import annotations

import itertools
from collections.abc import Generator
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.authenticator import RequestAuthenticator
from auth.memory import InMemoryUserStore
from auth.models import Principal, TokenPurpose
from auth.passwords import PasswordHasher
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import Settings

ACCESS_SECRET = "a" * 24 + "-access-test-secret"
REFRESH_SECRET = "r" * 24 + "-refresh-test-secret"
ALICE_PASSWORD = "correct-pw"

_db_counter = itertools.count()


def make_settings(**overrides) -> Settings:
    """Build Settings from keyword arguments only (never from .env)."""
    values = {
        "access_token_secret": ACCESS_SECRET,
        "refresh_token_secret": REFRESH_SECRET,
        "access_token_expiry": timedelta(minutes=15),
        "refresh_token_expiry": timedelta(days=7),
        "bcrypt_rounds": 4,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def shared_memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{next(_db_counter)}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Core components
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    """bcrypt at cost 4 -- the minimum -- keeps the suite fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def access_codec(settings: Settings) -> TokenCodec:
    return TokenCodec(TokenPurpose.ACCESS, settings.access_token_secret, settings.access_token_expiry)


@pytest.fixture
def refresh_codec(settings: Settings) -> TokenCodec:
    return TokenCodec(TokenPurpose.REFRESH, settings.refresh_token_secret, settings.refresh_token_expiry)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture
def sql_store() -> Generator[UserStore, None, None]:
    s = UserStore(shared_memory_url("test_auth"))
    yield s
    s.close()


@pytest.fixture
def memory_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture(params=["sql", "memory"])
def store(request: pytest.FixtureRequest):
    """Every test using this fixture runs once per SessionStore adapter."""
    if request.param == "sql":
        return request.getfixturevalue("sql_store")
    return request.getfixturevalue("memory_store")


@pytest.fixture
def manager(store, hasher, access_codec, refresh_codec) -> SessionManager:
    return SessionManager(store, hasher, access_codec, refresh_codec)


@pytest.fixture
def authenticator(store, access_codec) -> RequestAuthenticator:
    return RequestAuthenticator(store, access_codec)


@pytest.fixture
def alice(manager: SessionManager) -> Principal:
    return manager.register("alice", "Alice@Example.com", "Alice Liddell", ALICE_PASSWORD)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def api_client(settings: Settings) -> Generator[TestClient, None, None]:
    """TestClient over the real app with an isolated SQL store.

    Function-scoped: the client's cookie jar carries session cookies between
    requests, so sharing one client across tests would leak sessions.
    """
    store = UserStore(shared_memory_url("test_api"))
    app = create_app(settings, store=store)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
    store.close()
