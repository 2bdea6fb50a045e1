"""
api/dependencies.py — FastAPI dependency injection: auth services, current user.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from fastapi import Depends, Request

from ..auth.cookies import SessionCookieCodec
from ..auth.guard import AuthGuard, AuthResult
from ..auth.oauth import OAuthConnectFlow
from ..auth.sessions import SessionStore
from ..auth.users import CredentialStore
from ..config import Settings
from ..exceptions import NotAuthenticated


@dataclass(frozen=True)
class AuthServices:
    settings: Settings
    credentials: CredentialStore
    sessions: SessionStore
    codec: SessionCookieCodec
    guard: AuthGuard
    oauth: OAuthConnectFlow
    clock: Callable[[], datetime]


def get_services(request: Request) -> AuthServices:
    return request.app.state.auth


def current_auth(
    request: Request,
    services: AuthServices = Depends(get_services),
) -> AuthResult:
    cookie = request.cookies.get(services.settings.session_cookie_name)
    return services.guard.check(cookie)


def require_user(auth: AuthResult = Depends(current_auth)) -> AuthResult:
    """Gate a route; unauthenticated callers are redirected or get a 401."""
    if not auth.authenticated:
        raise NotAuthenticated(clear_cookie=auth.clear_cookie)
    return auth
