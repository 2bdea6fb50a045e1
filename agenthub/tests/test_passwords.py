"""
test_passwords.py — argon2 hashing and verification.
"""
from __future__ import annotations

import pytest

from agenthub.auth.passwords import PasswordHasher


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.mark.parametrize("password", ["Secret123!", "correct horse battery staple", "пароль-ü-🙂"])
def test_hash_then_verify_round_trips(hasher, password):
    digest = hasher.hash(password)
    assert digest != password
    assert hasher.verify(password, digest) is True


def test_verify_rejects_other_password(hasher):
    digest = hasher.hash("Secret123!")
    assert hasher.verify("secret123!", digest) is False
    assert hasher.verify("Secret123", digest) is False


def test_same_password_gets_distinct_salted_digests(hasher):
    first, second = hasher.hash("Secret123!"), hasher.hash("Secret123!")
    assert first != second
    assert first.startswith("$argon2id$")


def test_verify_never_raises_on_bad_input(hasher):
    assert hasher.verify("Secret123!", "not-a-digest") is False
    assert hasher.verify("", hasher.hash("x")) is False
    assert hasher.verify("Secret123!", "") is False


def test_empty_password_cannot_be_hashed(hasher):
    with pytest.raises(ValueError):
        hasher.hash("")


def test_needs_rehash_when_cost_increases(hasher):
    digest = hasher.hash("Secret123!")
    stronger = PasswordHasher(time_cost=2, memory_cost=16, parallelism=1)
    assert hasher.needs_rehash(digest) is False
    assert stronger.needs_rehash(digest) is True
    assert stronger.verify("Secret123!", digest) is True
