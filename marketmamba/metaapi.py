"""Broker adapter for MT4/MT5 accounts reached through the MetaAPI cloud bridge."""

from __future__ import annotations

import json
import threading
import time
from typing import Any, Mapping
from urllib.parse import urlsplit

import requests

from marketmamba.broker import Position, PositionNotFoundError
from marketmamba.errors import classify_error
from marketmamba.symbols import metaapi_symbol_candidates, metaapi_to_canonical

METAAPI_PROVISION_BASE = "https://mt-provisioning-api-v1.{region}.agiliumtrade.ai"
METAAPI_CLIENT_BASE = "https://mt-client-api-v1.{region}.agiliumtrade.ai"
METAAPI_DEFAULT_REGION = "new-york"

_TIMEOUT = 45
_DEPLOY_TIMEOUT = 180.0
_DEPLOY_POLL = 5.0
_MAGIC = 202602
_TOKEN_KEYS = ("metaapi_token", "token", "api_token")
_CLOUD_ID_KEYS = ("metaapi_account_id", "account_id")
_TRADE_DONE = "TRADE_RETCODE_DONE"
_TRADE_DONE_CODE = 10009

_shared_token = ""


class _ApiError(RuntimeError):
    """MetaAPI answered with a non-success HTTP status."""


def set_shared_metaapi_token(token: str) -> None:
    """Set the operator's MetaAPI token used when a client gives none."""
    global _shared_token
    _shared_token = (token or "").strip()


def uses_shared_metaapi_token() -> bool:
    """Report whether clients may leave out their own MetaAPI token."""
    return _shared_token != ""


def _cred(creds: Mapping[str, str], key: str) -> str:
    return str(creds.get(key) or "").strip()


def apply_shared_metaapi_token(creds: Mapping[str, str] | None) -> dict[str, str]:
    """Add the shared token to credentials that carry no token of their own."""
    if creds is None:
        creds = {}
    if not _shared_token:
        return creds if isinstance(creds, dict) else dict(creds)
    if all(not _cred(creds, key) for key in _TOKEN_KEYS):
        out = dict(creds)
        out["metaapi_token"] = _shared_token
        return out
    return creds if isinstance(creds, dict) else dict(creds)


def _metaapi_token(creds: Mapping[str, str]) -> str:
    for key in _TOKEN_KEYS:
        value = _cred(creds, key)
        if value:
            return value
    return ""


def _metaapi_region(creds: Mapping[str, str]) -> str:
    return _cred(creds, "region") or METAAPI_DEFAULT_REGION


def _is_cloud_id(value: str) -> bool:
    return len(value) >= 32 and "-" in value


def _cloud_account_id(creds: Mapping[str, str]) -> str:
    for key in _CLOUD_ID_KEYS:
        value = _cred(creds, key)
        if _is_cloud_id(value):
            return value
    return ""


def validate_metaapi_credentials(creds: Mapping[str, str] | None) -> None:
    """Require a MetaAPI token plus a cloud account id or full MT login details."""
    if creds is None:
        raise ValueError("MetaAPI credentials required")
    if not _metaapi_token(creds):
        raise ValueError("MetaAPI token is required (from app.metaapi.cloud)")
    if _cloud_account_id(creds):
        return
    if not _cred(creds, "login"):
        raise ValueError("MT login is required (or MetaAPI account id)")
    if not _cred(creds, "password"):
        raise ValueError("MT password is required (or MetaAPI account id)")
    if not _cred(creds, "server"):
        raise ValueError("MT server is required (e.g. Deriv-Demo)")


def _truncate(text: str, n: int) -> str:
    return text if len(text) <= n else text[:n] + "..."


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _account_id(raw: Mapping[str, Any]) -> str:
    return str(raw.get("_id") or raw.get("id") or "")


def _trade_succeeded(resp: Mapping[str, Any]) -> bool:
    if resp.get("stringCode") == _TRADE_DONE:
        return True
    return resp.get("numericCode") == _TRADE_DONE_CODE


class MetaApiBroker:
    """Trades an MT4/MT5 account the user owns, through MetaAPI."""

    def __init__(
        self,
        creds: Mapping[str, str] | None,
        provision_base: str | None = None,
        client_base: str | None = None,
    ):
        validate_metaapi_credentials(creds)
        assert creds is not None
        self._creds = dict(creds)
        self._token = _metaapi_token(creds)
        self.region = _metaapi_region(creds)
        self._provision_base = (
            provision_base.rstrip("/")
            if provision_base
            else METAAPI_PROVISION_BASE.format(region=self.region)
        )
        self._client_base = (
            client_base.rstrip("/")
            if client_base
            else METAAPI_CLIENT_BASE.format(region=self.region)
        )
        self._session = requests.Session()
        self._lock = threading.Lock()
        self._ready = False
        self.account_id = ""

    def get_balance(self) -> float:
        return _num(self._account_information().get("balance"))

    def get_equity(self) -> float:
        info = self._account_information()
        equity = _num(info.get("equity"))
        return equity if equity > 0 else _num(info.get("balance"))

    def get_open_positions(self) -> list[Position]:
        self._ensure_ready()
        raw = self._client("GET", f"/users/current/accounts/{self.account_id}/positions") or []
        out: list[Position] = []
        for item in raw:
            volume = _num(item.get("volume"))
            if volume == 0:
                continue
            kind = str(item.get("type") or "")
            side = "SELL" if kind.upper() == "POSITION_TYPE_SELL" or "SELL" in kind.upper() else "BUY"
            symbol = metaapi_to_canonical(str(item.get("symbol") or ""))
            position_id = str(item.get("id") or "") or f"{symbol}|{side}"
            out.append(
                Position(
                    id=position_id,
                    broker_id=position_id,
                    symbol=symbol,
                    type=side,
                    quantity=volume,
                    entry_price=_num(item.get("openPrice")),
                    current_price=_num(item.get("currentPrice")),
                    stop_loss=_num(item.get("stopLoss")),
                    take_profit=_num(item.get("takeProfit")),
                    profit=_num(item.get("profit")),
                )
            )
        return out

    def open_market_order(
        self,
        symbol: str,
        order_type: str,
        quantity: float,
        stop_loss: float,
        take_profit: float,
    ) -> Position:
        """Place a market order, trying each broker spelling of the symbol in turn."""
        self._ensure_ready()
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        action = "ORDER_TYPE_SELL" if order_type.upper() == "SELL" else "ORDER_TYPE_BUY"
        volume = max(quantity, 0.01)
        last_err: BaseException | None = None
        for candidate in metaapi_symbol_candidates(symbol):
            body: dict[str, Any] = {"actionType": action, "symbol": candidate, "volume": volume}
            if stop_loss > 0:
                body["stopLoss"] = stop_loss
            if take_profit > 0:
                body["takeProfit"] = take_profit
            try:
                resp = self._trade(body)
            except (requests.RequestException, _ApiError, ValueError) as exc:
                last_err = exc
                continue
            if not _trade_succeeded(resp):
                last_err = RuntimeError(f"MetaAPI trade: {resp.get('message', '')}")
                continue
            canonical = metaapi_to_canonical(candidate)
            try:
                opened = self.get_open_positions()
            except (requests.RequestException, _ApiError, ValueError):
                opened = []
            for position in opened:
                if position.symbol.lower() in (canonical.lower(), symbol.lower()):
                    return position
            position_id = str(resp.get("positionId") or "")
            return Position(
                id=position_id,
                broker_id=position_id,
                symbol=canonical,
                type=order_type.upper(),
                quantity=volume,
            )
        if last_err is None:
            last_err = RuntimeError(f"could not open order for symbol {symbol}")
        raise classify_error("metaapi", last_err)

    def close_position(self, position_id: str) -> None:
        self._ensure_ready()
        resp = self._trade({"actionType": "POSITION_CLOSE_ID", "positionId": position_id})
        if not _trade_succeeded(resp):
            raise RuntimeError(f"MetaAPI close: {resp.get('message', '')}")

    def close_all_positions(self) -> None:
        for position in self.get_open_positions():
            self.close_position(position.id)

    def modify_stop_loss(self, position_id: str, new_stop_loss: float) -> None:
        self._modify(position_id, new_stop_loss, 0)

    def modify_take_profit(self, position_id: str, new_take_profit: float) -> None:
        self._modify(position_id, 0, new_take_profit)

    def get_position_by_id(self, position_id: str) -> Position:
        for position in self.get_open_positions():
            if position_id in (position.id, position.broker_id):
                return position
        raise PositionNotFoundError(position_id)

    def _modify(self, position_id: str, stop_loss: float, take_profit: float) -> None:
        self._ensure_ready()
        body: dict[str, Any] = {"actionType": "POSITION_MODIFY", "positionId": position_id}
        if stop_loss > 0:
            body["stopLoss"] = stop_loss
        if take_profit > 0:
            body["takeProfit"] = take_profit
        resp = self._trade(body)
        if not _trade_succeeded(resp):
            raise RuntimeError(f"MetaAPI modify: {resp.get('message', '')}")

    def _trade(self, body: Mapping[str, Any]) -> dict[str, Any]:
        return self._client("POST", f"/users/current/accounts/{self.account_id}/trade", body) or {}

    def _account_information(self) -> dict[str, Any]:
        self._ensure_ready()
        path = f"/users/current/accounts/{self.account_id}/account-information"
        return self._client("GET", path) or {}

    def _ensure_ready(self) -> None:
        with self._lock:
            if self._ready and self.account_id:
                return
            account_id = _cloud_account_id(self._creds) or self._find_or_create_account()
            self._wait_deployed(account_id)
            self.account_id = account_id
            self._ready = True

    def _find_or_create_account(self) -> str:
        login = _cred(self._creds, "login")
        server = _cred(self._creds, "server")
        for account in self._provision("GET", "/users/current/accounts") or []:
            if (
                str(account.get("login") or "").strip() == login
                and str(account.get("server") or "").strip().lower() == server.lower()
            ):
                return _account_id(account)
        return self._create_account()

    def _create_account(self) -> str:
        login = _cred(self._creds, "login")
        body: dict[str, Any] = {
            "login": login,
            "password": _cred(self._creds, "password"),
            "server": _cred(self._creds, "server"),
            "name": _cred(self._creds, "name") or f"marketmamba-{login}",
            "platform": _cred(self._creds, "platform").lower() or "mt5",
            "magic": _MAGIC,
        }
        keywords = _cred(self._creds, "keywords")
        if keywords:
            body["keywords"] = [part.strip() for part in keywords.split(",")]
        created = self._provision("POST", "/users/current/accounts", body) or {}
        account_id = _account_id(created)
        if not account_id:
            raise RuntimeError("MetaAPI did not return account id")
        return account_id

    def _wait_deployed(self, account_id: str) -> None:
        deadline = time.monotonic() + _DEPLOY_TIMEOUT
        while time.monotonic() < deadline:
            account = self._provision("GET", f"/users/current/accounts/{account_id}") or {}
            state = str(account.get("state") or "").strip().upper()
            if state == "DEPLOYED":
                return
            if state in ("DEPLOY_FAILED", "REMOVED"):
                raise RuntimeError(f"MetaAPI account state {state}")
            time.sleep(_DEPLOY_POLL)
        raise RuntimeError(
            f"MetaAPI account {account_id} not deployed in time — check app.metaapi.cloud"
        )

    def _provision(self, method: str, path: str, body: Any = None) -> Any:
        return self._call(method, self._provision_base + path, body)

    def _client(self, method: str, path: str, body: Any = None) -> Any:
        return self._call(method, self._client_base + path, body)

    def _call(self, method: str, url: str, body: Any = None) -> Any:
        headers = {"auth-token": self._token, "Accept": "application/json"}
        data = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(body)
        if method == "POST":
            headers["transaction-id"] = f"mm-{time.time_ns()}"
        resp = self._session.request(method, url, data=data, headers=headers, timeout=_TIMEOUT)
        if not 200 <= resp.status_code < 300:
            raise _ApiError(
                f"MetaAPI {method} {urlsplit(url).path}: {_truncate(resp.text, 400)}"
            )
        if not resp.content:
            return None
        return resp.json()