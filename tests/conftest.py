"""
tests/conftest.py -- Shared test fixtures for the campus identity service.

This module provides:
  - RecordingNotifier: captures verification tokens instead of delivering them
  - signup_payload: factory for valid signup request bodies (wire format)
  - store / notifier: a fresh file-backed UserStore per test for unit tests
  - api_client: TestClient wired to an isolated store through a patched lifespan

Design: each store lives in a SQLite file under pytest's tmp_path. A file DB
(rather than :memory:) gives every connection its own handle, so concurrent
transactions behave the way they do against a real database.

The store is created inside the patched lifespan so its connections belong to
the TestClient's event loop.

DEBUG, BCRYPT_ROUNDS and ALLOWED_HOSTS must be set before any auth/core
import: get_settings() is read once at module load.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Any, Callable

# CRITICAL: Set env before any auth/core import so get_settings() auto-generates
# signing keys in dev mode and the TestClient host passes TrustedHostMiddleware.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.store import UserStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class RecordingNotifier:
    """VerificationNotifier that keeps every token it is asked to deliver."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    async def send_verification(self, email: str, name: str, token: str) -> None:
        self.sent.append((email, name, token))

    def token_for(self, email: str) -> str:
        for sent_email, _name, token in reversed(self.sent):
            if sent_email == email:
                return token
        raise AssertionError(f"no verification token sent to {email}")


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@campus.edu"


@pytest.fixture
def signup_payload() -> Callable[..., dict[str, Any]]:
    """Return a factory for valid signup bodies. Defaults to a college student."""

    def make(**overrides: Any) -> dict[str, Any]:
        body: dict[str, Any] = {
            "name": "Priya Sharma",
            "email": unique_email(),
            "password": "Abc12345!",
            "confirmPassword": "Abc12345!",
            "mobile": "9876543210",
            "gender": "female",
            "category": "college",
            "course": "B.Tech Computer Science",
            "graduationYear": "2026",
        }
        if overrides.get("category") == "alumni":
            body.pop("course")
            body.pop("graduationYear")
            body.update({"profession": "Software Engineer", "passedOutYear": "2015"})
        body.update(overrides)
        return body

    return make


# ---------------------------------------------------------------------------
# Unit-test fixtures -- one isolated database per test
# ---------------------------------------------------------------------------


@pytest.fixture
async def store(tmp_path) -> UserStore:
    s = UserStore(f"sqlite+aiosqlite:///{tmp_path / 'campusid_test.db'}")
    await s.init()
    yield s
    await s.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# ---------------------------------------------------------------------------
# Integration fixture -- one TestClient per test module
# ---------------------------------------------------------------------------


def _patch_lifespan(db_url: str, notifier: RecordingNotifier):
    """Return a lifespan that wires an isolated store and a recording notifier into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = UserStore(db_url)
        await app.state.user_store.init()
        app.state.notifier = notifier
        yield
        await app.state.user_store.close()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory) -> Generator[tuple[TestClient, RecordingNotifier], None, None]:
    """Yield (client, notifier) for API integration tests.

    The per-IP slowapi limiter is disabled so tests can log in more than
    LOGIN_RATE_LIMIT times; the per-email window is still enforced.
    test_api_routes.py turns it back on for the per-IP limit test.
    """
    db_path = tmp_path_factory.mktemp("api") / "campusid_api.db"
    notifier = RecordingNotifier()
    app.router.lifespan_context = _patch_lifespan(f"sqlite+aiosqlite:///{db_path}", notifier)
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, notifier

    limiter.enabled = True
