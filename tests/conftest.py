"""
tests/conftest.py -- Shared test fixtures for Folio unit and integration tests.

This module provides:
  - FakeMailer / FakeClock: record outgoing mail, control "now"
  - identity_store / content_store: fresh in-memory stores per test
  - auth_service / verification: services wired to the fakes
  - api_env: module-scoped TestClient over isolated stores, with an admin
  - api_client: (client, admin_token, admin_id) for simple integration tests
  - make_user: register + verify + login a fresh user through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the TestClient because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit-test stores use plain :memory: (single thread).

Environment must be set before any project import: get_settings() is read
once at module load by auth/tokens.py, api/limiter.py and api/main.py.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

# CRITICAL: set before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")  # auto-generated SECRET_KEY, create-admin enabled
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")  # bcrypt minimum, for speed
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')  # TestClient sends Host: testserver
os.environ["SMTP_HOST"] = ""

import pytest
from fastapi.testclient import TestClient

from api.main import app, wire_services
from auth.models import ROLE_ADMIN
from auth.service import AuthService
from auth.store import IdentityStore
from auth.tokens import create_access_token
from auth.verification import VerificationFlow
from content.store import ContentStore
from core.config import get_settings

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


@dataclass
class SentVerification:
    to: str
    name: str
    token: str
    origin_url: str


class FakeMailer:
    """Mailer stand-in that records messages instead of sending them.

    Set fail=True to simulate an SMTP outage (send_* return False).
    """

    def __init__(self) -> None:
        self.verifications: list[SentVerification] = []
        self.contact_notifications: list = []
        self.fail = False
        self.is_configured = True

    def send_verification_email(self, to: str, name: str, token: str, origin_url: str) -> bool:
        self.verifications.append(SentVerification(to=to, name=name, token=token, origin_url=origin_url))
        return not self.fail

    def send_contact_notification(self, contact) -> bool:
        self.contact_notifications.append(contact)
        return not self.fail

    def last_token_for(self, email: str) -> str:
        for sent in reversed(self.verifications):
            if sent.to == email.lower():
                return sent.token
        raise AssertionError(f"no verification email sent to {email}")


@dataclass
class FakeClock:
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Unit-test fixtures (function-scoped, plain in-memory stores)
# ---------------------------------------------------------------------------


@pytest.fixture
def identity_store() -> Generator[IdentityStore, None, None]:
    store = IdentityStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def content_store() -> Generator[ContentStore, None, None]:
    store = ContentStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def clock() -> FakeClock:
    # Starts at the real current time: tokens minted on this clock are checked
    # against the wall clock when decoded.
    return FakeClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def verification(identity_store: IdentityStore, mailer: FakeMailer, clock: FakeClock) -> VerificationFlow:
    return VerificationFlow(identity_store, mailer, expire_seconds=24 * 3600, cooldown_seconds=60, clock=clock)


@pytest.fixture
def auth_service(identity_store: IdentityStore, verification: VerificationFlow, clock: FakeClock) -> AuthService:
    return AuthService(identity_store, verification, get_settings(), clock=clock)


# ---------------------------------------------------------------------------
# Integration fixtures (module-scoped TestClient)
# ---------------------------------------------------------------------------


@dataclass
class ApiEnv:
    client: TestClient
    identity_store: IdentityStore
    content_store: ContentStore
    mailer: FakeMailer
    clock: FakeClock
    admin_id: int
    admin_token: str

    @property
    def admin_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.admin_token}"}


def _patch_lifespan(identity_store: IdentityStore, content_store: ContentStore, mailer: FakeMailer, clock: FakeClock):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores and fakes into app.state through the same
    wire_services() the production lifespan uses.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, identity_store, content_store, mailer, get_settings(), clock=clock)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_env(request) -> Generator[ApiEnv, None, None]:
    """Yield an ApiEnv for one test module.

    Store names include the module name so modules never share a database.
    The admin is created directly in the store, pre-verified, with a
    one-hour token (short enough to trigger X-New-Token on every request).
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    identity_store = IdentityStore(f"sqlite:///file:auth_{suffix}?mode=memory&cache=shared&uri=true")
    content_store = ContentStore(f"sqlite:///file:content_{suffix}?mode=memory&cache=shared&uri=true")
    mailer = FakeMailer()
    clock = FakeClock()

    admin = identity_store.create(
        "admin@folio.example.org", "AdminPass1", "Test Admin", role=ROLE_ADMIN, is_verified=True
    )
    token = create_access_token(admin.id, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(identity_store, content_store, mailer, clock)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiEnv(
            client=client,
            identity_store=identity_store,
            content_store=content_store,
            mailer=mailer,
            clock=clock,
            admin_id=admin.id,
            admin_token=token,
        )

    identity_store.close()
    content_store.close()


@pytest.fixture(scope="module")
def api_client(api_env: ApiEnv) -> tuple[TestClient, str, int]:
    """Yield (client, admin_token, admin_id) for API integration tests."""
    return api_env.client, api_env.admin_token, api_env.admin_id


_user_counter = itertools.count(1)


@pytest.fixture
def make_user(api_env: ApiEnv) -> Callable[..., tuple[str, str]]:
    """Return a factory: make_user(password=...) -> (email, bearer_token).

    Goes through the real register -> verify-email -> login flow.
    """

    def _make(password: str = "Passw0rd", name: str = "Test User") -> tuple[str, str]:
        email = f"user{next(_user_counter)}@folio.example.org"
        client = api_env.client
        resp = client.post(
            "/api/v1/auth/register",
            json={"name": name, "email": email, "password": password, "confirm_password": password},
        )
        assert resp.status_code == 201, resp.text
        token = api_env.mailer.last_token_for(email)
        resp = client.get("/api/v1/auth/verify-email", params={"email": email, "token": token})
        assert resp.status_code == 200, resp.text
        resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return email, resp.json()["access_token"]

    return _make
