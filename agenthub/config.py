"""
config.py — environment variables and application settings.

Settings are read once at process startup by ``load_settings`` and passed to
``create_app``; nothing reads the environment after that.
"""
from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PRODUCTION = "production"

# ── Defaults ──────────────────────────────────────────────────────────────────
DEFAULT_DATABASE_URL = "sqlite:///agenthub.db"
SESSION_TTL_HOURS: int = 24 * 7
OAUTH_STATE_TTL_SECONDS: int = 600
OAUTH_HTTP_TIMEOUT: float = 10.0
SAMESITE_VALUES = {"lax", "strict"}

# argon2id cost parameters (argon2-cffi defaults)
PASSWORD_TIME_COST: int = 3
PASSWORD_MEMORY_COST: int = 65_536      # KiB
PASSWORD_PARALLELISM: int = 4

# ── Known OAuth providers ─────────────────────────────────────────────────────
# Endpoint defaults; each can be overridden with OAUTH_<NAME>_<ENDPOINT>.
KNOWN_PROVIDERS: dict[str, dict[str, str]] = {
    "github": {
        "authorize_url": "https://github.com/login/oauth/authorize",
        "token_url": "https://github.com/login/oauth/access_token",
        "userinfo_url": "https://api.github.com/user",
        "scope": "read:user user:email",
    },
    "google": {
        "authorize_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_url": "https://oauth2.googleapis.com/token",
        "userinfo_url": "https://openidconnect.googleapis.com/v1/userinfo",
        "scope": "openid email profile",
    },
}


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    client_id: str
    client_secret: str
    authorize_url: str
    token_url: str
    userinfo_url: str = ""
    scope: str = ""


@dataclass(frozen=True)
class Settings:
    session_secret: str
    env: str = "development"
    database_url: str = DEFAULT_DATABASE_URL
    session_ttl: timedelta = timedelta(hours=SESSION_TTL_HOURS)
    session_cookie_name: str = "agenthub_session"
    state_cookie_name: str = "agenthub_oauth_state"
    cookie_secure: bool = False
    cookie_samesite: str = "lax"
    oauth_state_ttl: timedelta = timedelta(seconds=OAUTH_STATE_TTL_SECONDS)
    oauth_http_timeout: float = OAUTH_HTTP_TIMEOUT
    oauth_redirect_base: str = "http://localhost:8000"
    oauth_providers: Mapping[str, ProviderConfig] = field(default_factory=dict)
    login_url: str = "/login"
    cors_origins: tuple[str, ...] = ()
    password_time_cost: int = PASSWORD_TIME_COST
    password_memory_cost: int = PASSWORD_MEMORY_COST
    password_parallelism: int = PASSWORD_PARALLELISM

    def __post_init__(self) -> None:
        if not self.session_secret:
            raise ConfigurationError("SESSION_SECRET must be a non-empty string.")
        if self.cookie_samesite not in SAMESITE_VALUES:
            raise ConfigurationError(
                f"COOKIE_SAMESITE must be one of {sorted(SAMESITE_VALUES)}."
            )
        if self.cookie_samesite == "strict" and self.oauth_providers:
            # Browsers withhold Strict cookies on the provider's redirect back
            # to /oauth/{provider}/callback, which needs the session.
            raise ConfigurationError(
                "COOKIE_SAMESITE=strict cannot be combined with OAUTH_PROVIDERS; use lax."
            )
        if not self.database_url.startswith("sqlite:///"):
            raise ConfigurationError("DATABASE_URL must use the sqlite:/// scheme.")
        if self.is_production and not self.cookie_secure:
            # Secure cookies are not optional in production.
            object.__setattr__(self, "cookie_secure", True)

    @property
    def is_production(self) -> bool:
        return self.env == PRODUCTION

    @property
    def database_path(self) -> str:
        return self.database_url[len("sqlite:///"):]

    def provider(self, name: str) -> Optional[ProviderConfig]:
        return self.oauth_providers.get(name.lower())

    def callback_url(self, provider: str) -> str:
        return f"{self.oauth_redirect_base.rstrip('/')}/oauth/{provider}/callback"


# ── Environment helpers ───────────────────────────────────────────────────────

def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer.") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number.") from exc


def _split_csv(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _load_providers() -> dict[str, ProviderConfig]:
    providers: dict[str, ProviderConfig] = {}
    for name in _split_csv(os.getenv("OAUTH_PROVIDERS")):
        name = name.lower()
        prefix = f"OAUTH_{name.upper()}_"
        defaults = KNOWN_PROVIDERS.get(name, {})
        client_id = os.getenv(prefix + "CLIENT_ID", "")
        client_secret = os.getenv(prefix + "CLIENT_SECRET", "")
        if not client_id or not client_secret:
            raise ConfigurationError(
                f"Provider '{name}' is enabled but {prefix}CLIENT_ID / "
                f"{prefix}CLIENT_SECRET are missing."
            )
        authorize_url = os.getenv(prefix + "AUTHORIZE_URL", defaults.get("authorize_url", ""))
        token_url = os.getenv(prefix + "TOKEN_URL", defaults.get("token_url", ""))
        if not authorize_url or not token_url:
            raise ConfigurationError(
                f"Provider '{name}' needs {prefix}AUTHORIZE_URL and {prefix}TOKEN_URL."
            )
        providers[name] = ProviderConfig(
            name=name,
            client_id=client_id,
            client_secret=client_secret,
            authorize_url=authorize_url,
            token_url=token_url,
            userinfo_url=os.getenv(prefix + "USERINFO_URL", defaults.get("userinfo_url", "")),
            scope=os.getenv(prefix + "SCOPE", defaults.get("scope", "")),
        )
    return providers


def load_settings() -> Settings:
    """
    Build the process settings from the environment (and ``.env``).

    Raises ConfigurationError when SESSION_SECRET is missing in production.
    Outside production an ephemeral secret is generated, which invalidates
    every cookie on restart.
    """
    load_dotenv(override=False)

    env = os.getenv("APP_ENV", "development").strip().lower()
    secret = os.getenv("SESSION_SECRET", "").strip()
    if not secret:
        if env == PRODUCTION:
            raise ConfigurationError("SESSION_SECRET is required when APP_ENV=production.")
        logger.warning("SESSION_SECRET not set; using an ephemeral secret for env=%s", env)
        secret = secrets.token_urlsafe(48)

    return Settings(
        session_secret=secret,
        env=env,
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        session_ttl=timedelta(hours=_env_int("SESSION_TTL_HOURS", SESSION_TTL_HOURS)),
        session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "agenthub_session"),
        cookie_secure=_env_bool("COOKIE_SECURE", env == PRODUCTION),
        cookie_samesite=os.getenv("COOKIE_SAMESITE", "lax").strip().lower(),
        oauth_state_ttl=timedelta(
            seconds=_env_int("OAUTH_STATE_TTL_SECONDS", OAUTH_STATE_TTL_SECONDS)
        ),
        oauth_http_timeout=_env_float("OAUTH_HTTP_TIMEOUT", OAUTH_HTTP_TIMEOUT),
        oauth_redirect_base=os.getenv("OAUTH_REDIRECT_BASE", "http://localhost:8000"),
        oauth_providers=_load_providers(),
        login_url=os.getenv("LOGIN_URL", "/login"),
        cors_origins=tuple(_split_csv(os.getenv("CORS_ORIGINS"))),
        password_time_cost=_env_int("PASSWORD_TIME_COST", PASSWORD_TIME_COST),
        password_memory_cost=_env_int("PASSWORD_MEMORY_COST", PASSWORD_MEMORY_COST),
        password_parallelism=_env_int("PASSWORD_PARALLELISM", PASSWORD_PARALLELISM),
    )
