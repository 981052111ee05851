import pytest

from marketmamba.accounts import (
    Account,
    AccountSyncError,
    account_store_from,
    is_no_rows,
    sync_from_broker,
)


class StubBalances:
    def __init__(self, balance, equity=0.0, fail_balance=False, fail_equity=False):
        self.balance = balance
        self.equity = equity
        self.fail_balance = fail_balance
        self.fail_equity = fail_equity

    def get_balance(self):
        if self.fail_balance:
            raise RuntimeError("offline")
        return self.balance

    def get_equity(self):
        if self.fail_equity:
            raise RuntimeError("offline")
        return self.equity if self.equity > 0 else self.balance


class MemAccountStore:
    def __init__(self):
        self.accounts = {}
        self.created = 0
        self.updated = 0

    def create_account(self, account):
        self.created += 1
        self.accounts[account.user_id] = account

    def get_account_by_user(self, user_id):
        return self.accounts[user_id]

    def update_account(self, account):
        self.updated += 1
        self.accounts[account.user_id] = account


class NoneStore(MemAccountStore):
    def get_account_by_user(self, user_id):
        return self.accounts.get(user_id)


class BrokenStore(MemAccountStore):
    def get_account_by_user(self, user_id):
        raise RuntimeError("connection reset")


def test_sync_from_broker_creates_account():
    store = MemAccountStore()
    sync_from_broker(store, 99, "mock", StubBalances(7500, 7500))
    acc = store.get_account_by_user(99)
    assert acc.balance == 7500
    assert acc.broker_provider == "mock"
    assert acc.free_margin == 7500
    assert acc.id.startswith("acc")


def test_sync_from_broker_updates_balance():
    store = MemAccountStore()
    sync_from_broker(store, 1, "mock", StubBalances(5000, 5000))
    sync_from_broker(store, 1, "mock", StubBalances(12000, 12000))
    acc = store.get_account_by_user(1)
    assert acc.balance == 12000
    assert store.created == 1
    assert store.updated == 1


def test_empty_provider_defaults_to_mock():
    store = MemAccountStore()
    acc = sync_from_broker(store, 3, "", StubBalances(100))
    assert acc.broker_provider == "mock"


def test_store_returning_none_creates():
    store = NoneStore()
    sync_from_broker(store, 4, "oanda", StubBalances(250))
    assert store.accounts[4].broker_provider == "oanda"
    assert store.created == 1


def test_free_margin_uses_used_margin():
    store = MemAccountStore()
    store.accounts[5] = Account(id="acc_x", user_id=5, used_margin=1000)
    acc = sync_from_broker(store, 5, "mock", StubBalances(5000))
    assert acc.free_margin == 4000


def test_negative_free_margin_falls_back_to_equity():
    store = MemAccountStore()
    store.accounts[6] = Account(id="acc_y", user_id=6, used_margin=9000)
    acc = sync_from_broker(store, 6, "mock", StubBalances(5000))
    assert acc.free_margin == 5000


def test_equity_error_falls_back_to_balance():
    store = MemAccountStore()
    acc = sync_from_broker(store, 7, "mock", StubBalances(800, fail_equity=True))
    assert acc.equity == 800


def test_balance_error_raises():
    with pytest.raises(AccountSyncError, match="broker balance"):
        sync_from_broker(MemAccountStore(), 8, "mock", StubBalances(1, fail_balance=True))


def test_missing_store_or_broker_raises():
    with pytest.raises(AccountSyncError, match="missing store or broker"):
        sync_from_broker(None, 1, "mock", StubBalances(1))
    with pytest.raises(AccountSyncError, match="missing store or broker"):
        sync_from_broker(MemAccountStore(), 1, "mock", None)


def test_store_error_propagates():
    with pytest.raises(RuntimeError, match="connection reset"):
        sync_from_broker(BrokenStore(), 1, "mock", StubBalances(1))


def test_is_no_rows():
    assert not is_no_rows(None)
    assert is_no_rows(KeyError(1))
    assert is_no_rows(RuntimeError("sql: No Rows in result set"))
    assert not is_no_rows(RuntimeError("timeout"))


def test_account_store_from():
    store = MemAccountStore()
    assert account_store_from(store) is store
    assert account_store_from(None) is None
    assert account_store_from(object()) is None