"""
auth/guard.py — Request-time check gating protected resources.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .cookies import SessionCookieCodec
from .models import User
from .sessions import SessionStore


@dataclass(frozen=True)
class AuthResult:
    user: Optional[User] = None
    session_id: Optional[str] = None
    clear_cookie: bool = False

    @property
    def authenticated(self) -> bool:
        return self.user is not None


UNAUTHENTICATED = AuthResult()


class AuthGuard:
    """
    Decode the session cookie and validate it against the session store.

    Read-only: a successful check never touches session state. A cookie that
    decodes badly or points at a dead session comes back with
    ``clear_cookie=True`` so the response can drop it.
    """

    def __init__(self, codec: SessionCookieCodec, sessions: SessionStore) -> None:
        self._codec = codec
        self._sessions = sessions

    def check(self, cookie_value: Optional[str]) -> AuthResult:
        if not cookie_value:
            return UNAUTHENTICATED
        creds = self._codec.decode(cookie_value)
        if creds is None:
            return AuthResult(clear_cookie=True)
        user = self._sessions.validate(creds.raw_secret, session_id=creds.session_id)
        if user is None:
            return AuthResult(clear_cookie=True)
        return AuthResult(user=user, session_id=creds.session_id)
