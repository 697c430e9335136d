"""
Password hashing using argon2id, plus temporary password generation.
"""

from __future__ import annotations

import secrets

import argon2

from writerhub.config import get_settings

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)

# Excludes look-alike characters (0/O, 1/l/I)
TEMP_PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789"


class PasswordStrengthError(ValueError):
    """Raised when a password does not meet the minimum requirements."""


def hash_password(password: str) -> str:
    """Hash a password using argon2id. Returns the full hash string."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its argon2id hash.

    Returns True if the password matches. Never raises on mismatch.
    """
    try:
        return _hasher.verify(password_hash, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False


def validate_password_strength(password: str | None) -> None:
    """Raise PasswordStrengthError unless the password meets the minimum length."""
    min_length = get_settings().password_min_length
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if len(password) < min_length:
        msg = f"Password must be at least {min_length} characters"
        raise PasswordStrengthError(msg)


def generate_temp_password(length: int | None = None) -> str:
    """Random password drawn from an unambiguous alphabet."""
    n = length or get_settings().temp_password_length
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(n))
