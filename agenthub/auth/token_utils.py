"""
auth/token_utils.py — OAuth state token generation and one-shot consumption.

Only the SHA-256 of a state value is persisted. A state is bound to one
session and one provider and can be consumed exactly once before it expires.
"""
from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from .models import OAuthState
from .sqlite_db import get_conn, to_db

TOKEN_BYTES: int = 32


def hash_state(raw_state: str) -> str:
    return hashlib.sha256(raw_state.encode()).hexdigest()


def generate_state_token(
    db_path: str,
    session_id: str,
    provider: str,
    *,
    ttl: timedelta,
    now: datetime,
) -> tuple[str, datetime]:
    """Create and persist a new state token. Returns the raw state and its expiry."""
    raw_state = secrets.token_urlsafe(TOKEN_BYTES)
    expires_at = now + ttl
    with get_conn(db_path) as conn:
        conn.execute(
            """
            INSERT INTO oauth_states (id, state_hash, session_id, provider, created_at, expires_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                str(uuid.uuid4()), hash_state(raw_state), session_id, provider,
                to_db(now), to_db(expires_at),
            ),
        )
        conn.commit()
    return raw_state, expires_at


def consume_state_token(
    db_path: str,
    raw_state: str,
    session_id: str,
    provider: str,
    *,
    now: datetime,
) -> Optional[OAuthState]:
    """
    Mark the matching live state consumed and return it. Returns None when
    the state was never issued for this (session, provider), has expired, or
    was already used.
    A single conditional UPDATE keeps this one-shot under concurrent callbacks.
    """
    if not raw_state:
        return None
    state_hash = hash_state(raw_state)
    with get_conn(db_path) as conn:
        cur = conn.execute(
            """
            UPDATE oauth_states
            SET consumed_at = ?
            WHERE state_hash = ?
              AND session_id = ?
              AND provider = ?
              AND consumed_at IS NULL
              AND expires_at > ?
            """,
            (to_db(now), state_hash, session_id, provider, to_db(now)),
        )
        conn.commit()
        if cur.rowcount != 1:
            return None
        row = conn.execute(
            "SELECT * FROM oauth_states WHERE state_hash = ?", (state_hash,)
        ).fetchone()
    return OAuthState.from_row(row)


def purge_state_tokens(db_path: str, *, now: datetime) -> int:
    """Delete consumed and expired state tokens."""
    with get_conn(db_path) as conn:
        cur = conn.execute(
            "DELETE FROM oauth_states WHERE consumed_at IS NOT NULL OR expires_at <= ?",
            (to_db(now),),
        )
        conn.commit()
    return cur.rowcount
