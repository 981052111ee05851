"""Classification of broker failures."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable category of a broker failure."""

    AUTH = "auth"
    SYMBOL = "symbol"
    MARGIN = "margin"
    RATE_LIMIT = "rate_limit"
    UNAVAILABLE = "unavailable"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class BrokerError(Exception):
    """A broker failure with a kind and a user-facing message."""

    def __init__(self, kind: ErrorKind, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


def _find_broker_error(err: BaseException | None) -> BrokerError | None:
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, BrokerError):
            return err
        seen.add(id(err))
        err = err.__cause__
    return None


def _contains_any(msg: str, needles: tuple[str, ...]) -> bool:
    return any(n in msg for n in needles)


def classify_error(provider: str, err: BaseException | None) -> BaseException | None:
    """Wrap a raw broker or API error in a BrokerError with a kind."""
    if err is None:
        return None
    if _find_broker_error(err) is not None:
        return err
    text = str(err)
    msg = text.lower()
    kind = ErrorKind.UNKNOWN
    user_msg = text

    if _contains_any(msg, ("unauthorized", "401", "invalid token", "authentication", "credentials")):
        kind = ErrorKind.AUTH
        user_msg = "Broker authentication failed — check API token and account credentials"
    elif _contains_any(msg, ("symbol", "instrument", "unknown market")):
        kind = ErrorKind.SYMBOL
        user_msg = "Symbol not available on this broker — check your pair list"
    elif _contains_any(msg, ("margin", "insufficient", "not enough money", "funds")):
        kind = ErrorKind.MARGIN
        user_msg = "Insufficient margin or balance for this trade"
    elif _contains_any(msg, ("rate limit", "429", "too many")):
        kind = ErrorKind.RATE_LIMIT
        user_msg = "Broker rate limit — try again in a moment"
    elif _contains_any(msg, ("timeout", "connection refused", "deploy", "not connected")):
        kind = ErrorKind.UNAVAILABLE
        if provider == "metaapi":
            user_msg = "MetaAPI account not ready — first connect can take 1–3 minutes; try Test again"
        else:
            user_msg = "Broker temporarily unavailable — try again"

    return BrokerError(kind, user_msg, err)


def is_retryable(err: BaseException) -> bool:
    """Report whether an operation that failed with err is worth retrying."""
    be = _find_broker_error(err)
    if be is not None:
        return be.kind in (ErrorKind.RATE_LIMIT, ErrorKind.UNAVAILABLE)
    msg = str(err).lower()
    return "timeout" in msg or "429" in msg