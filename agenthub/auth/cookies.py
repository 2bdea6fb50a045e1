"""
auth/cookies.py — Session cookie codec.

The cookie value is an itsdangerous-signed, timestamped payload carrying the
session id and the raw session secret. Decoding never raises: anything that
is not a well-formed, correctly signed, fresh value decodes to None.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from itsdangerous import BadData, URLSafeTimedSerializer

from .sqlite_db import utcnow

COOKIE_SALT = "agenthub.session.v1"


@dataclass(frozen=True)
class SessionCredentials:
    session_id: str
    raw_secret: str

    def __repr__(self) -> str:
        return f"SessionCredentials(session_id={self.session_id!r})"


class SessionCookieCodec:
    def __init__(
        self,
        secret_key: str,
        *,
        max_age: timedelta,
        secure: bool,
        samesite: str = "lax",
        clock: Callable = utcnow,
    ) -> None:
        self._serializer = URLSafeTimedSerializer(secret_key, salt=COOKIE_SALT)
        self._max_age = max_age
        self._secure = secure
        self._samesite = samesite
        self._clock = clock

    def encode(self, session_id: str, raw_secret: str) -> str:
        return self._serializer.dumps({"sid": session_id, "tok": raw_secret})

    def decode(self, value: Optional[str]) -> Optional[SessionCredentials]:
        if not value or not isinstance(value, str):
            return None
        try:
            data = self._serializer.loads(value, max_age=int(self._max_age.total_seconds()))
        except BadData:
            return None
        if not isinstance(data, dict):
            return None
        session_id, raw_secret = data.get("sid"), data.get("tok")
        if not isinstance(session_id, str) or not isinstance(raw_secret, str):
            return None
        if not session_id or not raw_secret:
            return None
        return SessionCredentials(session_id=session_id, raw_secret=raw_secret)

    def cookie_params(self, expires_at: datetime) -> dict[str, Any]:
        """Keyword arguments for ``Response.set_cookie`` aligned with the session expiry."""
        max_age = max(0, int((expires_at - self._clock()).total_seconds()))
        return {
            "max_age": max_age,
            "httponly": True,
            "secure": self._secure,
            "samesite": self._samesite,
            "path": "/",
        }

    def clear_params(self) -> dict[str, Any]:
        """Keyword arguments for ``Response.delete_cookie`` matching ``cookie_params``."""
        return {
            "httponly": True,
            "secure": self._secure,
            "samesite": self._samesite,
            "path": "/",
        }
