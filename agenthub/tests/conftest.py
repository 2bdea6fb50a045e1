"""
conftest.py — Shared fixtures for all auth tests.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from agenthub.auth.exchange import TokenExchanger
from agenthub.auth.models import ProviderIdentity
from agenthub.config import ProviderConfig, Settings

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock the stores read instead of the wall clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

GITHUB = ProviderConfig(
    name="github",
    client_id="gh-client",
    client_secret="gh-secret",
    authorize_url="https://github.com/login/oauth/authorize",
    token_url="https://github.com/login/oauth/access_token",
    userinfo_url="https://api.github.com/user",
    scope="read:user user:email",
)

INSECURE = ProviderConfig(
    name="legacy",
    client_id="legacy-client",
    client_secret="legacy-secret",
    authorize_url="http://sso.example.com/authorize",
    token_url="https://sso.example.com/token",
)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        session_secret="test-session-secret",
        env="test",
        database_url=f"sqlite:///{tmp_path / 'auth.db'}",
        oauth_providers={"github": GITHUB, "legacy": INSECURE},
        oauth_redirect_base="http://testserver",
        oauth_http_timeout=0.5,
        # cheapest argon2 parameters so the suite stays fast
        password_time_cost=1,
        password_memory_cost=8,
        password_parallelism=1,
    )


# ---------------------------------------------------------------------------
# Services and app
# ---------------------------------------------------------------------------

@pytest.fixture
def exchanger() -> AsyncMock:
    mock = AsyncMock(spec=TokenExchanger)
    mock.exchange_token.return_value = ProviderIdentity(
        provider="github",
        provider_user_id="4242",
        email="alice@github.example",
        display_name="Alice",
    )
    return mock


@pytest.fixture
def services(settings, exchanger, clock):
    from agenthub.api.app import build_services
    return build_services(settings, exchanger=exchanger, clock=clock)


@pytest.fixture
def app(settings, exchanger, clock):
    from agenthub.api.app import create_app
    return create_app(settings, exchanger=exchanger, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def alice(services):
    return services.credentials.create_user(
        email="a@x.com", username="alice", password="Secret123!"
    )


@pytest.fixture
def logged_in(client):
    """Client with a signed-up and logged-in 'alice' cookie in its jar."""
    client.post("/signup", json={"email": "a@x.com", "username": "alice", "password": "Secret123!"})
    resp = client.post("/login", json={"usernameOrEmail": "alice", "password": "Secret123!"})
    assert resp.status_code == 200
    return client
