"""
api/app.py — FastAPI application factory.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..auth.cookies import SessionCookieCodec
from ..auth.exchange import OAuth2CodeExchanger, TokenExchanger
from ..auth.guard import AuthGuard
from ..auth.oauth import OAuthConnectFlow
from ..auth.passwords import PasswordHasher
from ..auth.sessions import SessionStore
from ..auth.sqlite_db import init_db, utcnow
from ..auth.token_utils import purge_state_tokens
from ..auth.users import CredentialStore
from ..config import Settings, load_settings
from .dependencies import AuthServices
from .errors import register_error_handlers
from .routes_auth import router as auth_router
from .routes_oauth import router as oauth_router

logger = logging.getLogger(__name__)


def build_services(
    settings: Settings,
    *,
    exchanger: Optional[TokenExchanger] = None,
    clock=utcnow,
) -> AuthServices:
    db_path = settings.database_path
    init_db(db_path)

    hasher = PasswordHasher(
        time_cost=settings.password_time_cost,
        memory_cost=settings.password_memory_cost,
        parallelism=settings.password_parallelism,
    )
    sessions = SessionStore(db_path, ttl=settings.session_ttl, clock=clock)
    codec = SessionCookieCodec(
        settings.session_secret,
        max_age=settings.session_ttl,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        clock=clock,
    )
    if exchanger is None:
        exchanger = OAuth2CodeExchanger(
            settings.oauth_providers,
            redirect_uri_for=settings.callback_url,
            timeout=settings.oauth_http_timeout,
        )
    oauth = OAuthConnectFlow(
        db_path,
        settings.oauth_providers,
        exchanger,
        redirect_uri_for=settings.callback_url,
        state_ttl=settings.oauth_state_ttl,
        # overall deadline: token request + userinfo request
        exchange_timeout=settings.oauth_http_timeout * 2,
        clock=clock,
    )
    return AuthServices(
        settings=settings,
        credentials=CredentialStore(db_path, hasher, clock=clock),
        sessions=sessions,
        codec=codec,
        guard=AuthGuard(codec, sessions),
        oauth=oauth,
        clock=clock,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: AuthServices = app.state.auth
    purged = services.sessions.purge_expired()
    purged += purge_state_tokens(services.settings.database_path, now=services.clock())
    logger.info("Startup housekeeping removed %d stale row(s)", purged)
    yield


def create_app(
    settings: Optional[Settings] = None,
    *,
    exchanger: Optional[TokenExchanger] = None,
    clock=utcnow,
) -> FastAPI:
    """
    Build the app. Settings are validated before anything else, so a
    production process without SESSION_SECRET never starts.
    """
    settings = settings or load_settings()

    app = FastAPI(
        title="Agent Hub Auth API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.auth = build_services(settings, exchanger=exchanger, clock=clock)

    # ── CORS ──────────────────────────────────────────────────────────────────
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(auth_router)
    app.include_router(oauth_router)

    # ── Health ────────────────────────────────────────────────────────────────
    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    register_error_handlers(app)
    logger.info(
        "Auth service configured env=%s providers=%s",
        settings.env,
        ",".join(sorted(settings.oauth_providers)) or "none",
    )
    return app
