"""
auth/sqlite_db.py — SQLite schema bootstrap and shared connection helper.
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator

_CREATE_USERS = """
CREATE TABLE IF NOT EXISTS users (
    id                   TEXT PRIMARY KEY,
    email                TEXT UNIQUE NOT NULL,
    username             TEXT UNIQUE NOT NULL COLLATE NOCASE,
    password_hash        TEXT NOT NULL,
    created_at           DATETIME NOT NULL,
    password_changed_at  DATETIME
);
"""

_CREATE_SESSIONS = """
CREATE TABLE IF NOT EXISTS sessions (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    token_hash  TEXT UNIQUE NOT NULL,
    created_at  DATETIME NOT NULL,
    expires_at  DATETIME NOT NULL,
    revoked_at  DATETIME
);
"""

_CREATE_OAUTH_STATES = """
CREATE TABLE IF NOT EXISTS oauth_states (
    id           TEXT PRIMARY KEY,
    state_hash   TEXT UNIQUE NOT NULL,
    session_id   TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    provider     TEXT NOT NULL,
    created_at   DATETIME NOT NULL,
    expires_at   DATETIME NOT NULL,
    consumed_at  DATETIME
);
"""

_CREATE_LINKED_ACCOUNTS = """
CREATE TABLE IF NOT EXISTS linked_accounts (
    id                TEXT PRIMARY KEY,
    user_id           TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    provider          TEXT NOT NULL,
    provider_user_id  TEXT NOT NULL,
    email             TEXT,
    display_name      TEXT,
    linked_at         DATETIME NOT NULL,
    UNIQUE (provider, provider_user_id)
);
"""

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_sessions_expires ON sessions(expires_at);",
    "CREATE INDEX IF NOT EXISTS idx_oauth_states_session ON oauth_states(session_id, provider);",
    "CREATE INDEX IF NOT EXISTS idx_linked_accounts_user ON linked_accounts(user_id);",
]


def init_db(db_path: str) -> None:
    """Create tables if they don't exist. Safe to call on every startup."""
    with get_conn(db_path) as conn:
        conn.execute(_CREATE_USERS)
        conn.execute(_CREATE_SESSIONS)
        conn.execute(_CREATE_OAUTH_STATES)
        conn.execute(_CREATE_LINKED_ACCOUNTS)
        for idx in _INDEXES:
            conn.execute(idx)
        conn.commit()


@contextmanager
def get_conn(db_path: str) -> Generator[sqlite3.Connection, None, None]:
    """Yield a connection with row_factory set and foreign keys enforced."""
    conn = sqlite3.connect(db_path, timeout=5.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    try:
        yield conn
    finally:
        conn.close()


# ── Timestamp helpers ─────────────────────────────────────────────────────────
# Every timestamp is written in one fixed format so that string comparison in
# SQL orders the same way as the datetimes do.

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db(value) -> datetime:
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
