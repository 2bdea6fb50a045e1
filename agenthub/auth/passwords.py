"""
auth/passwords.py — argon2id password hashing and verification.
"""
from __future__ import annotations

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError


class PasswordHasher:
    """
    Salted, adaptive one-way hashing.

    The salt is generated per call and embedded in the encoded digest, so two
    hashes of the same password never match each other.
    """

    def __init__(self, *, time_cost: int = 3, memory_cost: int = 65_536, parallelism: int = 4) -> None:
        self._ph = _Argon2Hasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, plain: str) -> str:
        if not plain:
            raise ValueError("Password must not be empty")
        return self._ph.hash(plain)

    def verify(self, plain: str, digest: str) -> bool:
        if not plain or not digest:
            return False
        try:
            return self._ph.verify(digest, plain)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, digest: str) -> bool:
        try:
            return self._ph.check_needs_rehash(digest)
        except InvalidHashError:
            return True
