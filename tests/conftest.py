"""Pytest configuration and shared fixtures."""

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from intern_portal.api.server import create_app
from intern_portal.auth.security import create_access_token
from intern_portal.config import Config


TEST_SECRET = "test-signing-secret-0123456789abcdef"


@pytest.fixture
def cfg(tmp_path):
    """Config pointing at a fresh SQLite file."""
    return replace(
        Config(),
        DB_DSN=str(tmp_path / "intern_portal_test.sqlite"),
        APP_ENV="test",
        JWT_SECRET=TEST_SECRET,
        AUTH_TOKEN_EXPIRE_MINUTES=60,
        LOG_REQUESTS=False,
    )


@pytest.fixture
def client(cfg):
    """HTTP client with the lifespan (schema init) run."""
    with TestClient(create_app(cfg)) as c:
        yield c


@pytest.fixture
def registered(client):
    """Register an intern and return (intern, token)."""
    r = client.post(
        "/api/auth/register",
        json={"name": "Ada Lovelace", "email": "ada@example.com", "password": "correct-horse"},
    )
    assert r.status_code == 201
    body = r.json()
    return body["intern"], body["token"]


@pytest.fixture
def auth_headers(registered):
    _, token = registered
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_token():
    def _make(intern_id="intern-1", *, secret=TEST_SECRET, expires_minutes=60):
        return create_access_token(secret=secret, intern_id=intern_id, expires_minutes=expires_minutes)

    return _make
