"""
Pytest configuration and shared fixtures.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api.config import APIConfig
from api.main import create_app
from catalog.models import utc_now
from catalog.store import CatalogStore
from catalog.tokens import TokenCodec

TEST_SECRET = "test-secret-key-for-signing-session-tokens"


@pytest.fixture
def api_config():
    """Configuration with a test secret, ignoring any local .env file."""
    return APIConfig(
        secret_key=TEST_SECRET,
        log_level="WARNING",
        log_format="console",
        _env_file=None,
    )


@pytest.fixture
def codec():
    """Token codec using the test secret and the default lifetime."""
    return TokenCodec(secret=TEST_SECRET)


@pytest.fixture
def expired_codec():
    """Codec sharing the test secret whose tokens are already expired."""
    return TokenCodec(
        secret=TEST_SECRET,
        clock=lambda: utc_now() - timedelta(minutes=10),
    )


@pytest.fixture
def store(codec):
    """Fresh catalog state."""
    return CatalogStore(codec)


@pytest.fixture
def client(api_config, store):
    """Test client over an app bound to the ``store`` fixture."""
    return TestClient(create_app(api_config, store))


@pytest.fixture
def register_and_login(client):
    """Return a function that registers a user over HTTP and logs them in."""

    def _register_and_login(username="bob", password="pw1", customer="t1", user_agent=None):
        response = client.post(
            "/user",
            json={"username": username, "password": password, "customer": customer},
        )
        assert response.status_code == 200

        headers = {"user-agent": user_agent} if user_agent else None
        response = client.post(
            "/user/login",
            json={"username": username, "password": password},
            headers=headers,
        )
        assert response.status_code == 200
        return response.json()["token"]

    return _register_and_login
