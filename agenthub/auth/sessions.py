"""
auth/sessions.py — Server-side revocable sessions keyed by a hashed secret.

Only the SHA-256 of the session secret is stored. The raw secret leaves this
module exactly once, inside the IssuedSession returned by ``create``.
Expiry is fixed at creation time; validation never extends it.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import sqlite3
from datetime import timedelta
from typing import Callable, Optional

from .models import IssuedSession, Session, User
from .sqlite_db import from_db, get_conn, to_db, utcnow

logger = logging.getLogger(__name__)

SECRET_BYTES: int = 32
SESSION_ID_BYTES: int = 16

# Hash of a value no secret can produce; compared against on a lookup miss.
_MISS_HASH = "0" * 64


def hash_secret(raw_secret: str) -> str:
    return hashlib.sha256(raw_secret.encode()).hexdigest()


class SessionStore:
    def __init__(
        self,
        db_path: str,
        *,
        ttl: timedelta,
        clock: Callable = utcnow,
    ) -> None:
        self._db_path = db_path
        self._ttl = ttl
        self._clock = clock

    def create(self, user_id: str) -> IssuedSession:
        """Persist a new session and hand back its raw secret (never retrievable again)."""
        session_id = secrets.token_urlsafe(SESSION_ID_BYTES)
        raw_secret = secrets.token_urlsafe(SECRET_BYTES)
        now = self._clock()
        expires_at = now + self._ttl
        with get_conn(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO sessions (id, user_id, token_hash, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (session_id, user_id, hash_secret(raw_secret), to_db(now), to_db(expires_at)),
            )
            conn.commit()
        logger.info("Session created user_id=%s session_prefix=%s", user_id, session_id[:6])
        return IssuedSession(session_id=session_id, raw_secret=raw_secret, expires_at=expires_at)

    def validate(self, raw_secret: str, session_id: Optional[str] = None) -> Optional[User]:
        """
        Return the session's user, or None when the secret is unknown, the
        session is revoked or expired, or ``session_id`` names another session.
        """
        if not raw_secret:
            return None
        presented = hash_secret(raw_secret)
        row = self._lookup(presented)

        stored = row["token_hash"] if row else _MISS_HASH
        matched = hmac.compare_digest(stored, presented)
        if not row or not matched:
            return None
        if session_id is not None and not hmac.compare_digest(row["id"], session_id):
            return None

        session = Session.from_row(row)
        if not session.is_active(self._clock()):
            return None
        return User(
            id=row["user_id"],
            email=row["email"],
            username=row["username"],
            password_hash=row["password_hash"],
            created_at=from_db(row["user_created_at"]),
        )

    def get(self, session_id: str) -> Optional[Session]:
        with get_conn(self._db_path) as conn:
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return Session.from_row(row) if row else None

    def list_active(self, user_id: str) -> list[Session]:
        with get_conn(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM sessions
                WHERE user_id = ? AND revoked_at IS NULL AND expires_at > ?
                ORDER BY created_at DESC
                """,
                (user_id, to_db(self._clock())),
            ).fetchall()
        return [Session.from_row(r) for r in rows]

    def revoke(self, session_id: str) -> None:
        """Mark one session revoked. Revoking twice (or an unknown id) is a no-op."""
        with get_conn(self._db_path) as conn:
            cur = conn.execute(
                "UPDATE sessions SET revoked_at = ? WHERE id = ? AND revoked_at IS NULL",
                (to_db(self._clock()), session_id),
            )
            conn.commit()
        if cur.rowcount:
            logger.info("Session revoked session_prefix=%s", session_id[:6])

    def revoke_all(self, user_id: str) -> int:
        """Revoke every live session of one user; returns how many were revoked."""
        with get_conn(self._db_path) as conn:
            cur = conn.execute(
                "UPDATE sessions SET revoked_at = ? WHERE user_id = ? AND revoked_at IS NULL",
                (to_db(self._clock()), user_id),
            )
            conn.commit()
        logger.info("Revoked %d session(s) user_id=%s", cur.rowcount, user_id)
        return cur.rowcount

    def purge_expired(self) -> int:
        """Delete sessions that ended (expired or revoked) more than one TTL ago."""
        cutoff = to_db(self._clock() - self._ttl)
        with get_conn(self._db_path) as conn:
            cur = conn.execute(
                "DELETE FROM sessions WHERE expires_at < ? OR revoked_at < ?",
                (cutoff, cutoff),
            )
            conn.commit()
        if cur.rowcount:
            logger.info("Purged %d ended session(s)", cur.rowcount)
        return cur.rowcount

    # ── Private helpers ───────────────────────────────────────────────────────

    def _lookup(self, token_hash: str):
        sql = """
            SELECT s.*, u.email, u.username, u.password_hash, u.created_at AS user_created_at
            FROM sessions s
            JOIN users u ON u.id = s.user_id
            WHERE s.token_hash = ?
        """
        try:
            return self._fetch_one(sql, token_hash)
        except sqlite3.OperationalError as exc:
            logger.warning("Session lookup failed (%s); retrying once", exc)
            return self._fetch_one(sql, token_hash)

    def _fetch_one(self, sql: str, token_hash: str):
        with get_conn(self._db_path) as conn:
            return conn.execute(sql, (token_hash,)).fetchone()
