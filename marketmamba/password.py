"""Password hashing for dashboard admins."""

from __future__ import annotations

import bcrypt

BCRYPT_COST = 12
_MIN_LENGTH = 8
_MAX_BYTES = 72


def hash_password(plain: str) -> str:
    """Hash a password with bcrypt; raise ValueError if it is too short or too long."""
    raw = plain.encode("utf-8")
    if len(raw) < _MIN_LENGTH:
        raise ValueError("password must be at least 8 characters")
    if len(raw) > _MAX_BYTES:
        raise ValueError("password length exceeds 72 bytes")
    return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=BCRYPT_COST)).decode("ascii")


def check_password(hashed: str, plain: str) -> bool:
    """Report whether the password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False