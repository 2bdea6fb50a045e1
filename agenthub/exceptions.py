"""
exceptions.py — Error taxonomy shared by the auth core and the HTTP layer.

Every error carries a machine-readable ``code``, the HTTP status it maps to
and a user-facing message. Authentication failures always use the same
message so responses never reveal whether an account exists.
"""
from __future__ import annotations

from typing import Any, Optional


class AgentHubError(Exception):
    code: str = "INTERNAL_ERROR"
    http_status: int = 500
    default_message: str = "An unexpected error occurred."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details or []
        super().__init__(self.message)


class ValidationError(AgentHubError):
    """Malformed input. ``details`` holds one entry per offending field."""

    code = "INVALID_INPUT"
    http_status = 422
    default_message = "The request contains invalid fields."

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(details=[{"field": field, "message": message}])


class UnsupportedProviderError(ValidationError):
    code = "UNSUPPORTED_PROVIDER"
    http_status = 400
    default_message = "This sign-in provider is not available."


class AuthenticationError(AgentHubError):
    code = "UNAUTHORIZED"
    http_status = 401
    default_message = "Invalid credentials."


class NotAuthenticated(AuthenticationError):
    """Raised by the auth guard dependency; may ask for the cookie to be cleared."""

    default_message = "Authentication required."

    def __init__(self, *, clear_cookie: bool = False) -> None:
        super().__init__()
        self.clear_cookie = clear_cookie


class ConflictError(AgentHubError):
    code = "CONFLICT"
    http_status = 409
    default_message = "An account with these details already exists."


class StateMismatchError(AgentHubError):
    code = "OAUTH_STATE_MISMATCH"
    http_status = 400
    default_message = "This sign-in link is invalid or has expired. Please start again."


class UpstreamError(AgentHubError):
    code = "UPSTREAM_UNAVAILABLE"
    http_status = 503
    default_message = "The provider could not be reached. Please try again."
    retryable = True


class ConfigurationError(AgentHubError):
    code = "CONFIGURATION_ERROR"
    default_message = "The application is misconfigured."
