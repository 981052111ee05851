"""Signed, expiring session tokens keyed by Telegram user id."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import re
import time
from datetime import timedelta

DEFAULT_SESSION_TTL = timedelta(days=365)

_B64_RE = re.compile(r"[A-Za-z0-9_-]*")
_INT_RE = re.compile(r"[+-]?[0-9]+")


class InvalidSessionError(ValueError):
    """A session token is malformed, forged or expired."""


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    if not _B64_RE.fullmatch(text) or len(text) % 4 == 1:
        raise InvalidSessionError("invalid session payload")
    try:
        return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as exc:
        raise InvalidSessionError("invalid session payload") from exc


def _sign(secret: str, payload: bytes) -> str:
    return _b64encode(hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest())


def _parse_int(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise InvalidSessionError(f"invalid number in session: {text!r}")
    return int(text)


def issue(secret: str, telegram_id: int, ttl: timedelta | float | None = None) -> str:
    """Create a signed token for the user that expires after ttl (a year if unset)."""
    if not secret:
        raise ValueError("session secret not configured")
    if isinstance(ttl, timedelta):
        seconds = ttl.total_seconds()
    else:
        seconds = float(ttl or 0)
    if seconds <= 0:
        seconds = DEFAULT_SESSION_TTL.total_seconds()
    exp = int(time.time() + seconds)
    payload = f"{telegram_id}:{exp}".encode("ascii")
    return f"{_b64encode(payload)}.{_sign(secret, payload)}"


def verify(secret: str, token: str) -> int:
    """Check a token and return its Telegram user id."""
    if not secret or not token:
        raise InvalidSessionError("invalid session")
    parts = token.split(".")
    if len(parts) != 2:
        raise InvalidSessionError("invalid session format")
    payload = _b64decode(parts[0])
    expected = _sign(secret, payload)
    if not hmac.compare_digest(expected.encode("ascii"), parts[1].encode("utf-8")):
        raise InvalidSessionError("invalid session signature")

    try:
        segments = payload.decode("utf-8").split(":")
    except UnicodeDecodeError as exc:
        raise InvalidSessionError("invalid session payload") from exc
    if len(segments) != 2:
        raise InvalidSessionError("invalid session payload")
    uid = _parse_int(segments[0])
    exp = _parse_int(segments[1])
    if int(time.time()) > exp:
        raise InvalidSessionError("session expired")
    return uid