"""
api/routes_oauth.py — Provider connect: start, callback, linked accounts.
"""
from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from ..auth.guard import AuthResult
from ..exceptions import AgentHubError, StateMismatchError
from .dependencies import AuthServices, get_services, require_user
from .dto import LinkedAccountResponse
from .errors import app_error_response

router = APIRouter(tags=["oauth"])

STATE_COOKIE_PATH = "/oauth"


def _clear_state_cookie(response: Response, services: AuthServices) -> None:
    response.delete_cookie(
        services.settings.state_cookie_name,
        path=STATE_COOKIE_PATH,
        secure=services.settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )


def _account_body(account) -> dict:
    return LinkedAccountResponse(
        provider=account.provider,
        provider_user_id=account.provider_user_id,
        email=account.email,
        display_name=account.display_name,
        linked_at=account.linked_at,
    ).model_dump(mode="json", by_alias=True)


@router.get("/me/accounts", response_model=list[LinkedAccountResponse])
def linked_accounts(
    auth: AuthResult = Depends(require_user),
    services: AuthServices = Depends(get_services),
):
    return [_account_body(a) for a in services.oauth.linked_accounts(auth.user.id)]


@router.get("/oauth/{provider}")
def start_connect(
    provider: str,
    auth: AuthResult = Depends(require_user),
    services: AuthServices = Depends(get_services),
):
    start = services.oauth.start_connect(auth.session_id, provider)
    resp = RedirectResponse(url=start.redirect_url, status_code=302)
    # Lax, not Strict: the callback arrives as a cross-site top-level navigation.
    resp.set_cookie(
        key=services.settings.state_cookie_name,
        value=start.state,
        max_age=int(services.settings.oauth_state_ttl.total_seconds()),
        httponly=True,
        secure=services.settings.cookie_secure,
        samesite="lax",
        path=STATE_COOKIE_PATH,
    )
    return resp


@router.get("/oauth/{provider}/callback")
async def connect_callback(
    provider: str,
    request: Request,
    auth: AuthResult = Depends(require_user),
    services: AuthServices = Depends(get_services),
):
    received_state = request.query_params.get("state", "")
    cookie_state = request.cookies.get(services.settings.state_cookie_name, "")
    try:
        # bytes: compare_digest rejects non-ASCII str
        if not received_state or not hmac.compare_digest(
            cookie_state.encode(), received_state.encode()
        ):
            raise StateMismatchError()
        account = await services.oauth.handle_callback(
            auth.session_id,
            provider,
            received_state,
            dict(request.query_params),
        )
    except AgentHubError as exc:
        # the state is spent or useless either way
        resp = app_error_response(exc)
    else:
        resp = JSONResponse(_account_body(account))
    _clear_state_cookie(resp, services)
    return resp
