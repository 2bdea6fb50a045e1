"""
api/errors.py — Standard error response shapes and exception handlers.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from ..exceptions import AgentHubError, NotAuthenticated, UpstreamError

logger = logging.getLogger(__name__)


def error_response(
    code: str,
    message: str,
    http_status: int = 400,
    details: Optional[list] = None,
    retryable: bool = False,
) -> JSONResponse:
    body: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        },
        "status": "error",
    }
    if details:
        body["error"]["details"] = details
    if retryable:
        body["error"]["retryable"] = True

    return JSONResponse(status_code=http_status, content=body)


# ── Named constructors for common error codes ─────────────────────────────────

def unauthorized(message: str = "Authentication required.") -> JSONResponse:
    return error_response("UNAUTHORIZED", message, 401)


def invalid_input(message: str, details: Optional[list] = None) -> JSONResponse:
    return error_response("INVALID_INPUT", message, 422, details)


def internal_error() -> JSONResponse:
    return error_response("INTERNAL_ERROR", "An unexpected error occurred.", 500)


# ── Handlers ──────────────────────────────────────────────────────────────────

def app_error_response(exc: AgentHubError) -> JSONResponse:
    response = error_response(
        exc.code,
        exc.message,
        exc.http_status,
        exc.details,
        retryable=isinstance(exc, UpstreamError),
    )
    if isinstance(exc, UpstreamError):
        response.headers["Retry-After"] = "5"
    return response


async def app_error_handler(request: Request, exc: AgentHubError) -> JSONResponse:
    return app_error_response(exc)


async def not_authenticated_handler(request: Request, exc: NotAuthenticated):
    """Browsers go to the login page, API clients get a bare 401."""
    services = request.app.state.auth
    if "text/html" in request.headers.get("accept", ""):
        response = RedirectResponse(services.settings.login_url, status_code=303)
    else:
        response = unauthorized()
    if exc.clear_cookie:
        response.delete_cookie(
            services.settings.session_cookie_name,
            **services.codec.clear_params(),
        )
    return response


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
            "message": err.get("msg", "Invalid value."),
        }
        for err in exc.errors()
    ]
    return invalid_input("The request contains invalid fields.", details)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return internal_error()


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NotAuthenticated, not_authenticated_handler)
    app.add_exception_handler(AgentHubError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
