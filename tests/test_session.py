import base64
import time
from datetime import timedelta
from unittest import mock

import pytest

from marketmamba.session import DEFAULT_SESSION_TTL, InvalidSessionError, issue, verify


def _payload(token):
    head = token.split(".")[0]
    return base64.urlsafe_b64decode(head + "=" * (-len(head) % 4)).decode()


def test_round_trip():
    token = issue("secret", 42, timedelta(hours=1))
    assert verify("secret", token) == 42


def test_round_trip_with_seconds_ttl():
    token = issue("secret", 5311, 120)
    assert verify("secret", token) == 5311


def test_token_shape():
    token = issue("secret", 42, timedelta(hours=1))
    assert token.count(".") == 1
    assert "=" not in token
    uid, exp = _payload(token).split(":")
    assert uid == "42"
    assert int(exp) > time.time()


def test_default_ttl_is_a_year():
    before = time.time()
    token = issue("secret", 1, None)
    exp = int(_payload(token).split(":")[1])
    expected = before + DEFAULT_SESSION_TTL.total_seconds()
    assert abs(exp - expected) <= 5
    token_zero = issue("secret", 1, 0)
    assert abs(int(_payload(token_zero).split(":")[1]) - expected) <= 5


def test_wrong_secret_rejected():
    token = issue("secret", 42, timedelta(hours=1))
    with pytest.raises(InvalidSessionError, match="signature"):
        verify("token", token)


def test_tampered_payload_rejected():
    token = issue("secret", 42, timedelta(hours=1))
    sig = token.split(".")[1]
    forged = base64.urlsafe_b64encode(b"43:9999999999").rstrip(b"=").decode()
    with pytest.raises(InvalidSessionError):
        verify("secret", f"{forged}.{sig}")


def test_bad_format_rejected():
    with pytest.raises(InvalidSessionError, match="format"):
        verify("secret", "a.b.c")
    with pytest.raises(InvalidSessionError, match="format"):
        verify("secret", "nodot")


def test_empty_inputs_rejected():
    with pytest.raises(InvalidSessionError):
        verify("secret", "")
    with pytest.raises(InvalidSessionError):
        verify("", "a.b")


def test_undecodable_payload_rejected():
    with pytest.raises(InvalidSessionError, match="payload"):
        verify("secret", "!!!.abc")


def test_issue_requires_secret():
    with pytest.raises(ValueError, match="not configured"):
        issue("", 42, timedelta(hours=1))


def test_expired_token_rejected():
    token = issue("secret", 42, timedelta(seconds=60))
    later = time.time() + 3600
    with mock.patch("time.time", return_value=later):
        with pytest.raises(InvalidSessionError, match="expired"):
            verify("secret", token)