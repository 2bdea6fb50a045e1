"""
auth/users.py — Credential store: signup, login lookup, password rotation.
"""
from __future__ import annotations

import logging
import re
import sqlite3
import uuid
from typing import Callable, Optional

from ..exceptions import AuthenticationError, ConflictError, ValidationError
from .models import User
from .passwords import PasswordHasher
from .sqlite_db import get_conn, to_db, utcnow

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,32}$")
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 1024


def validate_signup(email: str, username: str, password: str) -> tuple[str, str]:
    """Return the normalised (email, username) or raise ValidationError with every bad field."""
    details = []
    email = (email or "").strip().lower()
    username = (username or "").strip()
    if len(email) > 254 or not EMAIL_RE.match(email):
        details.append({"field": "email", "message": "Enter a valid email address."})
    if not USERNAME_RE.match(username):
        details.append({
            "field": "username",
            "message": "Use 3-32 letters, digits, '.', '_' or '-'.",
        })
    details.extend(_password_problems(password, field="password"))
    if details:
        raise ValidationError(details=details)
    return email, username


def _password_problems(password: str, *, field: str) -> list[dict]:
    if not password or len(password) < PASSWORD_MIN_LENGTH:
        return [{"field": field, "message": f"Use at least {PASSWORD_MIN_LENGTH} characters."}]
    if len(password) > PASSWORD_MAX_LENGTH:
        return [{"field": field, "message": "Password is too long."}]
    return []


class CredentialStore:
    def __init__(
        self,
        db_path: str,
        hasher: PasswordHasher,
        *,
        clock: Callable = utcnow,
    ) -> None:
        self._db_path = db_path
        self._hasher = hasher
        self._clock = clock
        # Verified against when the account does not exist, so unknown users
        # cost the same as wrong passwords.
        self._dummy_hash = hasher.hash(uuid.uuid4().hex)

    # ── Lookups ───────────────────────────────────────────────────────────────

    def get_by_id(self, user_id: str) -> Optional[User]:
        with get_conn(self._db_path) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return User.from_row(row) if row else None

    def get_by_login(self, username_or_email: str) -> Optional[User]:
        ident = (username_or_email or "").strip()
        if not ident:
            return None
        if "@" in ident:
            sql, param = "SELECT * FROM users WHERE email = ?", ident.lower()
        else:
            sql, param = "SELECT * FROM users WHERE username = ?", ident
        with get_conn(self._db_path) as conn:
            row = conn.execute(sql, (param,)).fetchone()
        return User.from_row(row) if row else None

    # ── Mutations ─────────────────────────────────────────────────────────────

    def create_user(self, *, email: str, username: str, password: str) -> User:
        email, username = validate_signup(email, username, password)
        user_id = str(uuid.uuid4())
        password_hash = self._hasher.hash(password)
        try:
            with get_conn(self._db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO users (id, email, username, password_hash, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (user_id, email, username, password_hash, to_db(self._clock())),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            logger.info("Signup rejected: duplicate email or username")
            raise ConflictError() from exc
        logger.info("User created user_id=%s", user_id)
        return self.get_by_id(user_id)  # type: ignore[return-value]

    def authenticate(self, username_or_email: str, password: str) -> User:
        """
        Return the user for a correct password, else raise AuthenticationError.
        Unknown account and wrong password are indistinguishable to the caller.
        """
        user = self.get_by_login(username_or_email)
        if user is None:
            self._hasher.verify(password or "x", self._dummy_hash)
            logger.info("Login failed")
            raise AuthenticationError()
        if not self._hasher.verify(password, user.password_hash):
            logger.info("Login failed")
            raise AuthenticationError()

        if self._hasher.needs_rehash(user.password_hash):
            self._set_password_hash(user.id, self._hasher.hash(password), rotated=False)
            logger.info("Password digest upgraded user_id=%s", user.id)
        return user

    def change_password(self, user_id: str, current_password: str, new_password: str) -> User:
        """Rotate the credential. Callers revoke the user's sessions afterwards."""
        user = self.get_by_id(user_id)
        if user is None or not self._hasher.verify(current_password, user.password_hash):
            raise AuthenticationError()
        problems = _password_problems(new_password, field="newPassword")
        if problems:
            raise ValidationError(details=problems)
        self._set_password_hash(user_id, self._hasher.hash(new_password), rotated=True)
        logger.info("Password changed user_id=%s", user_id)
        return self.get_by_id(user_id)  # type: ignore[return-value]

    def _set_password_hash(self, user_id: str, password_hash: str, *, rotated: bool) -> None:
        with get_conn(self._db_path) as conn:
            if rotated:
                conn.execute(
                    "UPDATE users SET password_hash = ?, password_changed_at = ? WHERE id = ?",
                    (password_hash, to_db(self._clock()), user_id),
                )
            else:
                conn.execute(
                    "UPDATE users SET password_hash = ? WHERE id = ?",
                    (password_hash, user_id),
                )
            conn.commit()
