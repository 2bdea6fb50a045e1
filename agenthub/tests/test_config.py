"""
test_config.py — Startup configuration checks.
"""
from __future__ import annotations

import pytest

from agenthub.config import Settings, load_settings
from agenthub.exceptions import ConfigurationError

_ENV_KEYS = [
    "APP_ENV",
    "SESSION_SECRET",
    "DATABASE_URL",
    "COOKIE_SECURE",
    "COOKIE_SAMESITE",
    "OAUTH_PROVIDERS",
    "OAUTH_GITHUB_CLIENT_ID",
    "OAUTH_GITHUB_CLIENT_SECRET",
    "OAUTH_ACME_CLIENT_ID",
    "OAUTH_ACME_CLIENT_SECRET",
    "OAUTH_ACME_AUTHORIZE_URL",
    "OAUTH_ACME_TOKEN_URL",
    "SESSION_TTL_HOURS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # keep a developer's .env out of the picture
    monkeypatch.setattr("agenthub.config.load_dotenv", lambda **kwargs: False)


def test_production_without_secret_refuses_to_start(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    with pytest.raises(ConfigurationError):
        load_settings()


def test_production_with_blank_secret_refuses_to_start(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("SESSION_SECRET", "   ")
    with pytest.raises(ConfigurationError):
        load_settings()


def test_production_forces_secure_cookies(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("SESSION_SECRET", "s3cret")
    monkeypatch.setenv("COOKIE_SECURE", "false")
    settings = load_settings()
    assert settings.is_production
    assert settings.cookie_secure is True


def test_development_generates_ephemeral_secret(caplog):
    first, second = load_settings(), load_settings()
    assert first.session_secret and second.session_secret
    assert first.session_secret != second.session_secret
    assert "ephemeral secret" in caplog.text


def test_settings_are_immutable(monkeypatch):
    monkeypatch.setenv("SESSION_SECRET", "s3cret")
    settings = load_settings()
    with pytest.raises(AttributeError):
        settings.session_secret = "other"


def test_known_provider_uses_builtin_endpoints(monkeypatch):
    monkeypatch.setenv("SESSION_SECRET", "s3cret")
    monkeypatch.setenv("OAUTH_PROVIDERS", "GitHub")
    monkeypatch.setenv("OAUTH_GITHUB_CLIENT_ID", "id")
    monkeypatch.setenv("OAUTH_GITHUB_CLIENT_SECRET", "secret")
    provider = load_settings().provider("github")
    assert provider.authorize_url == "https://github.com/login/oauth/authorize"
    assert provider.userinfo_url == "https://api.github.com/user"


def test_enabled_provider_without_credentials_is_fatal(monkeypatch):
    monkeypatch.setenv("SESSION_SECRET", "s3cret")
    monkeypatch.setenv("OAUTH_PROVIDERS", "github")
    with pytest.raises(ConfigurationError):
        load_settings()


def test_unknown_provider_needs_explicit_endpoints(monkeypatch):
    monkeypatch.setenv("SESSION_SECRET", "s3cret")
    monkeypatch.setenv("OAUTH_PROVIDERS", "acme")
    monkeypatch.setenv("OAUTH_ACME_CLIENT_ID", "id")
    monkeypatch.setenv("OAUTH_ACME_CLIENT_SECRET", "secret")
    with pytest.raises(ConfigurationError):
        load_settings()

    monkeypatch.setenv("OAUTH_ACME_AUTHORIZE_URL", "https://acme.example/authorize")
    monkeypatch.setenv("OAUTH_ACME_TOKEN_URL", "https://acme.example/token")
    assert load_settings().provider("acme").token_url == "https://acme.example/token"


@pytest.mark.parametrize("kwargs", [
    {"session_secret": ""},
    {"session_secret": "x", "cookie_samesite": "none"},
    {"session_secret": "x", "database_url": "postgresql://db/agenthub"},
])
def test_invalid_settings_are_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        Settings(**kwargs)


def test_bad_integer_is_reported(monkeypatch):
    monkeypatch.setenv("SESSION_SECRET", "s3cret")
    monkeypatch.setenv("SESSION_TTL_HOURS", "a week")
    with pytest.raises(ConfigurationError):
        load_settings()


def test_database_path_from_url():
    assert Settings(session_secret="x", database_url="sqlite:////var/lib/agenthub.db").database_path == (
        "/var/lib/agenthub.db"
    )


def test_strict_session_cookie_conflicts_with_oauth(monkeypatch):
    monkeypatch.setenv("SESSION_SECRET", "s3cret")
    monkeypatch.setenv("COOKIE_SAMESITE", "strict")
    assert load_settings().cookie_samesite == "strict"

    monkeypatch.setenv("OAUTH_PROVIDERS", "github")
    monkeypatch.setenv("OAUTH_GITHUB_CLIENT_ID", "id")
    monkeypatch.setenv("OAUTH_GITHUB_CLIENT_SECRET", "secret")
    with pytest.raises(ConfigurationError):
        load_settings()
