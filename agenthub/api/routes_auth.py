"""
api/routes_auth.py — Signup, login, logout, password rotation and /me.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from ..auth.guard import AuthResult
from ..auth.models import IssuedSession
from .dependencies import AuthServices, get_services, require_user
from .dto import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    PasswordChangeRequest,
    PasswordChangeResponse,
    SignupRequest,
    SignupResponse,
    StatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


# ── Helpers ───────────────────────────────────────────────────────────────────

def _set_session_cookie(response: Response, services: AuthServices, issued: IssuedSession) -> None:
    response.set_cookie(
        key=services.settings.session_cookie_name,
        value=services.codec.encode(issued.session_id, issued.raw_secret),
        **services.codec.cookie_params(issued.expires_at),
    )


def _clear_session_cookie(response: Response, services: AuthServices) -> None:
    response.delete_cookie(
        services.settings.session_cookie_name,
        **services.codec.clear_params(),
    )


# ── Routes ────────────────────────────────────────────────────────────────────

@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=SignupResponse)
def signup(body: SignupRequest, services: AuthServices = Depends(get_services)):
    user = services.credentials.create_user(
        email=body.email,
        username=body.username,
        password=body.password,
    )
    return SignupResponse(user_id=user.id)


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    response: Response,
    services: AuthServices = Depends(get_services),
):
    user = services.credentials.authenticate(body.username_or_email, body.password)
    issued = services.sessions.create(user.id)
    _set_session_cookie(response, services, issued)
    return LoginResponse(user_id=user.id, username=user.username, expires_at=issued.expires_at)


@router.post("/logout", response_model=StatusResponse)
def logout(
    request: Request,
    response: Response,
    services: AuthServices = Depends(get_services),
):
    """Revoke the presented session, if any, and clear the cookie. Always succeeds."""
    creds = services.codec.decode(request.cookies.get(services.settings.session_cookie_name))
    if creds and services.sessions.validate(creds.raw_secret, session_id=creds.session_id):
        services.sessions.revoke(creds.session_id)
    _clear_session_cookie(response, services)
    return StatusResponse(status="logged_out")


@router.post("/logout/all", response_model=StatusResponse)
def logout_everywhere(
    response: Response,
    auth: AuthResult = Depends(require_user),
    services: AuthServices = Depends(get_services),
):
    services.sessions.revoke_all(auth.user.id)
    _clear_session_cookie(response, services)
    return StatusResponse(status="logged_out")


@router.get("/me", response_model=MeResponse)
def me(auth: AuthResult = Depends(require_user)):
    user = auth.user
    return MeResponse(id=user.id, email=user.email, username=user.username, created_at=user.created_at)


@router.post("/password", response_model=PasswordChangeResponse)
def change_password(
    body: PasswordChangeRequest,
    response: Response,
    auth: AuthResult = Depends(require_user),
    services: AuthServices = Depends(get_services),
):
    """Rotate the password, end every session of the user, and start a fresh one."""
    services.credentials.change_password(auth.user.id, body.current_password, body.new_password)
    revoked = services.sessions.revoke_all(auth.user.id)
    issued = services.sessions.create(auth.user.id)
    _set_session_cookie(response, services, issued)
    return PasswordChangeResponse(revoked_sessions=revoked, expires_at=issued.expires_at)
