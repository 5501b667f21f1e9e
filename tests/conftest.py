"""
tests/conftest.py -- Shared test fixtures for AuthKit unit and integration tests.

This module provides:
  - FakeClock: a settable clock injected into issuers/validators so tests move
    time without sleeping
  - make_settings(): test Settings with a fixed secret and cookies that work
    over TestClient's plain-http transport (secure=False, SameSite=Lax)
  - store / service fixtures: in-memory AccountStore and the AuthService on top
  - _patch_lifespan(): wires a test AuthService into app.state, bypassing real startup
  - api_client: TestClient over the real FastAPI app with isolated storage
  - helpers to build Starlette requests and read Set-Cookie headers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
TestClient because route handlers run in a thread pool. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread. Pure
unit tests run on one thread and use plain :memory:.

DEBUG must be set before api.main is imported: the app validates process
settings at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator, Iterator
from contextlib import asynccontextmanager, contextmanager
from http.cookies import SimpleCookie

# CRITICAL: Set DEBUG before any api import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ConfigError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import Response

from api.limiter import login_rate_limit
from api.main import app
from auth.models import Account
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import AccountStore
from core.config import CookieOptions, Settings

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
T0 = 1_700_000_000.0

PASSWORD = "Str0ng!Passw0rd"
EMAIL = "ada@example.com"


# ---------------------------------------------------------------------------
# Clock and settings
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock returning a fixed Unix time until advanced."""

    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_settings(**overrides) -> Settings:
    values = {
        "secret_key": TEST_SECRET,
        "cookie_options": CookieOptions(secure=False, same_site="Lax"),
    }
    values.update(overrides)
    return Settings(**values)


def shared_memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Request / response helpers
# ---------------------------------------------------------------------------


def make_request(cookies: dict[str, str] | None = None) -> Request:
    """Build a bare Starlette Request carrying the given cookies."""
    headers = []
    if cookies:
        value = "; ".join(f"{k}={v}" for k, v in cookies.items())
        headers.append((b"cookie", value.encode("latin-1")))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


def set_cookies(response) -> dict[str, str]:
    """Return {name: value} for every Set-Cookie header on a response.

    Accepts a Starlette Response or an httpx Response. Deletion cookies show
    up with an empty value.
    """
    headers = response.headers
    values = headers.get_list("set-cookie") if hasattr(headers, "get_list") else headers.getlist("set-cookie")
    jar: SimpleCookie = SimpleCookie()
    for header in values:
        jar.load(header)
    return {name: morsel.value for name, morsel in jar.items()}


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(settings: Settings, store: AccountStore, clock: FakeClock) -> AuthService:
    return AuthService(settings, store, clock=clock)


@pytest.fixture
def account(settings: Settings, store: AccountStore) -> Account:
    """An active account with password PASSWORD."""
    account_id = store.create_account(
        Account(
            email=EMAIL,
            name="Ada",
            surname="Lovelace",
            password_hash=PasswordHasher(settings).hash(PASSWORD),
        )
    )
    return store.get_by_id(account_id)


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test service and its store into app.state so TestClient
    routes see an isolated test DB rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = service.settings
        app.state.store = service.store
        app.state.auth = service
        login_rate_limit.configure(service.settings)
        yield

    return test_lifespan


@pytest.fixture
def api_service() -> Generator[AuthService, None, None]:
    s = AccountStore(shared_memory_url("test_api"))
    # Tests log in many times from the same client address.
    yield AuthService(make_settings(login_rate_limit="1000/minute"), s)
    s.close()


@pytest.fixture
def api_client(api_service: AuthService) -> Generator[TestClient, None, None]:
    """TestClient over the real app with a patched lifespan and empty account DB."""
    app.router.lifespan_context = _patch_lifespan(api_service)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client


@contextmanager
def client_for(**overrides) -> Iterator[TestClient]:
    """TestClient over the real app whose AuthService uses make_settings(**overrides)."""
    store = AccountStore(shared_memory_url("test_api"))
    app.router.lifespan_context = _patch_lifespan(AuthService(make_settings(**overrides), store))
    try:
        with TestClient(app, raise_server_exceptions=True) as client:
            yield client
    finally:
        store.close()


def signup_body(email: str = EMAIL, password: str = PASSWORD) -> dict[str, str]:
    return {"email": email, "password": password, "name": "Ada", "surname": "Lovelace"}
