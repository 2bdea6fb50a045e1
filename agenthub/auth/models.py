"""
auth/models.py — Pure-Python dataclass models for auth entities.
No ORM dependency; raw sqlite3 rows are mapped here.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .sqlite_db import from_db


def _opt_dt(value) -> Optional[datetime]:
    return from_db(value) if value is not None else None


@dataclass(frozen=True)
class User:
    id: str
    email: str
    username: str
    password_hash: str
    created_at: datetime
    password_changed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(
            id=row["id"],
            email=row["email"],
            username=row["username"],
            password_hash=row["password_hash"],
            created_at=from_db(row["created_at"]),
            password_changed_at=_opt_dt(row["password_changed_at"]),
        )

    def __repr__(self) -> str:
        # password_hash stays out of logs and tracebacks
        return f"User(id={self.id!r}, username={self.username!r})"


@dataclass(frozen=True)
class Session:
    id: str
    user_id: str
    token_hash: str
    created_at: datetime
    expires_at: datetime
    revoked_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "Session":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            token_hash=row["token_hash"],
            created_at=from_db(row["created_at"]),
            expires_at=from_db(row["expires_at"]),
            revoked_at=_opt_dt(row["revoked_at"]),
        )

    def is_active(self, now: datetime) -> bool:
        return self.revoked_at is None and now < self.expires_at


@dataclass(frozen=True)
class IssuedSession:
    """Returned once by SessionStore.create; the only place the raw secret lives."""

    session_id: str
    raw_secret: str
    expires_at: datetime

    def __repr__(self) -> str:
        return f"IssuedSession(session_id={self.session_id!r}, expires_at={self.expires_at!r})"


@dataclass(frozen=True)
class OAuthState:
    id: str
    state_hash: str
    session_id: str
    provider: str
    created_at: datetime
    expires_at: datetime
    consumed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "OAuthState":
        return cls(
            id=row["id"],
            state_hash=row["state_hash"],
            session_id=row["session_id"],
            provider=row["provider"],
            created_at=from_db(row["created_at"]),
            expires_at=from_db(row["expires_at"]),
            consumed_at=_opt_dt(row["consumed_at"]),
        )


@dataclass(frozen=True)
class ProviderIdentity:
    provider: str
    provider_user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class LinkedAccount:
    id: str
    user_id: str
    provider: str
    provider_user_id: str
    email: Optional[str]
    display_name: Optional[str]
    linked_at: datetime

    @classmethod
    def from_row(cls, row) -> "LinkedAccount":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            provider=row["provider"],
            provider_user_id=row["provider_user_id"],
            email=row["email"],
            display_name=row["display_name"],
            linked_at=from_db(row["linked_at"]),
        )
