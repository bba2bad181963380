"""
tests/conftest.py -- Shared fixtures for the auth service tests.

This module provides:
  - auth_config(): the TestingConfig options as a plain dict, pointed at a
    file-backed SQLite database under tmp_path
  - RecordingNotifier: stands in for the mail dispatcher and keeps every message
  - components: AuthComponents built from auth_config (no Flask involved)
  - client: Flask test client over create_app("testing") sharing the same setup

Design: a file-backed SQLite DB is the default so rotation races exercise real
SQLite locking. The in-memory setup shares one connection and serializes every
transaction; test_sessions.py races it separately.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from sqlalchemy import select, update

from api import create_app
from api.config import TestingConfig
from auth_core.factory import AuthComponents, build_auth_service
from models.refresh_token import RefreshToken
from models.user import User
from utils.security import hash_token

STRONG_PASSWORD = "Passw0rd!"


class RecordingNotifier:
    """Synchronous notifier that records messages instead of sending them."""

    def __init__(self):
        self.sent: list[tuple] = []

    def send_welcome(self, email, name):
        self.sent.append(("welcome", email, name))

    def send_verification(self, email, token, user_id):
        self.sent.append(("verification", email, token, user_id))

    def send_password_reset(self, email, token, user_id):
        self.sent.append(("password_reset", email, token, user_id))

    def last(self, kind: str) -> tuple:
        matches = [m for m in self.sent if m[0] == kind]
        assert matches, f"no {kind} notification was sent"
        return matches[-1]


def auth_config(tmp_path, **overrides) -> dict:
    config = {key: getattr(TestingConfig, key) for key in dir(TestingConfig) if key.isupper()}
    config["DATABASE_URL"] = f"sqlite:///{tmp_path / 'auth.db'}"
    config.update(overrides)
    return config


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def components(tmp_path, notifier) -> Generator[AuthComponents, None, None]:
    comps = build_auth_service(auth_config(tmp_path), notifier=notifier)
    yield comps
    comps.close()


@pytest.fixture
def app(tmp_path, notifier):
    application = create_app("testing", overrides={"DATABASE_URL": f"sqlite:///{tmp_path / 'api.db'}"},
                             notifier=notifier)
    yield application
    application.extensions["auth"].close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def signed_up(client):
    """Sign up a@x.com over HTTP and return the response payload's data."""
    resp = client.post(
        "/api/v1/auth/signup",
        json={"email": "a@x.com", "password": STRONG_PASSWORD, "name": "A"},
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def grant_roles(components: AuthComponents, user_id: str, roles: list[str]) -> None:
    """Overwrite a user's roles directly in the database."""
    session = components.storage.get_session()
    with components.storage.transaction_lock:
        session.execute(update(User).where(User.id == user_id).values(roles=list(roles)))
        session.commit()


def token_is_stored(components: AuthComponents, user_id: str, token: str) -> bool:
    """True if the refresh token's digest is in the user's live set."""
    session = components.storage.get_session()
    with components.storage.transaction_lock:
        found = session.execute(
            select(RefreshToken.id).where(
                RefreshToken.user_id == user_id,
                RefreshToken.token_hash == hash_token(token),
            )
        ).first()
        session.commit()
    return found is not None
