"""Persisted trading-account balances and their sync from a live broker."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable


@dataclass
class Account:
    """A user's trading account snapshot."""

    id: str
    user_id: int
    broker_provider: str = ""
    balance: float = 0.0
    equity: float = 0.0
    used_margin: float = 0.0
    free_margin: float = 0.0
    leverage: float = 1
    last_synced_at: datetime | None = None
    updated_at: datetime | None = None


@runtime_checkable
class AccountStore(Protocol):
    """Storage of one account row per user.

    ``get_account_by_user`` returns None, or raises a lookup error, when the
    user has no account yet.
    """

    def create_account(self, account: Account) -> None: ...

    def get_account_by_user(self, user_id: int) -> Account | None: ...

    def update_account(self, account: Account) -> None: ...


class BrokerBalances(Protocol):
    """Anything that reports a live balance and equity."""

    def get_balance(self) -> float: ...

    def get_equity(self) -> float: ...


class AccountSyncError(RuntimeError):
    """The account row could not be synced from the broker."""


def is_no_rows(err: BaseException | None) -> bool:
    """Report whether err means the requested row does not exist."""
    if err is None:
        return False
    return isinstance(err, LookupError) or "no rows" in str(err).lower()


def account_store_from(store: Any) -> AccountStore | None:
    """Return store if it offers account CRUD, otherwise None."""
    if store is None:
        return None
    if isinstance(store, AccountStore):
        return store
    return None


def _generate_id(prefix: str) -> str:
    return f"{prefix}_{time.time_ns()}_{secrets.token_hex(4)}"


def sync_from_broker(
    store: AccountStore | None,
    user_id: int,
    provider: str,
    balances: BrokerBalances | None,
) -> Account:
    """Create or update the user's account row from live broker balances."""
    if store is None or balances is None:
        raise AccountSyncError("account sync: missing store or broker")
    if not provider:
        provider = "mock"

    try:
        balance = balances.get_balance()
    except Exception as exc:
        raise AccountSyncError(f"broker balance: {exc}") from exc
    try:
        equity = balances.get_equity()
    except Exception:
        equity = balance

    now = datetime.now(timezone.utc)
    try:
        existing = store.get_account_by_user(user_id)
    except Exception as exc:
        if not is_no_rows(exc):
            raise
        existing = None

    if existing is None:
        account = Account(
            id=_generate_id("acc"),
            user_id=user_id,
            broker_provider=provider,
            balance=balance,
            equity=equity,
            used_margin=0.0,
            free_margin=equity,
            leverage=1,
            last_synced_at=now,
            updated_at=now,
        )
        store.create_account(account)
        return account

    existing.broker_provider = provider
    existing.balance = balance
    existing.equity = equity
    existing.free_margin = equity - existing.used_margin
    if existing.free_margin < 0:
        existing.free_margin = equity
    existing.last_synced_at = now
    existing.updated_at = now
    store.update_account(existing)
    return existing