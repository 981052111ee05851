"""Broker adapter for the OANDA v20 REST API."""

from __future__ import annotations

import json
from typing import Any, Mapping

import requests

from marketmamba.broker import Position, PositionNotFoundError
from marketmamba.errors import BrokerError, ErrorKind, classify_error
from marketmamba.symbols import oanda_to_symbol, symbol_to_oanda

OANDA_PRACTICE_BASE = "https://api-fxpractice.oanda.com"
OANDA_LIVE_BASE = "https://api-fxtrade.oanda.com"
_TIMEOUT = 30

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}


def _parse_float(text: Any) -> float:
    try:
        return float(str(text).strip())
    except (TypeError, ValueError):
        return 0.0


def _truncate(text: str, n: int) -> str:
    return text if len(text) <= n else text[:n] + "..."


def oanda_units_from_quantity(quantity: float) -> int:
    """Map an internal lot quantity to an OANDA unit count, at least 1."""
    if quantity <= 0:
        return 1
    return max(int(quantity * 1000), 1)


def _position(instrument: str, side: str, units: str, avg_price: str, upl: str) -> Position:
    symbol = oanda_to_symbol(instrument)
    position_id = f"{symbol}|{side}"
    price = _parse_float(avg_price)
    return Position(
        id=position_id,
        broker_id=position_id,
        symbol=symbol,
        type=side,
        quantity=abs(_parse_float(units)),
        entry_price=price,
        current_price=price,
        profit=_parse_float(upl),
    )


class OandaBroker:
    """Trades an OANDA practice or live account."""

    def __init__(self, creds: Mapping[str, str] | None, session: requests.Session | None = None):
        if creds is None:
            raise ValueError("OANDA credentials required")
        token = (creds.get("api_token") or "").strip()
        account_id = (creds.get("account_id") or "").strip()
        if not token or not account_id:
            raise ValueError("OANDA api_token and account_id are required")
        practice = creds.get("practice") in _TRUE_WORDS
        self.base_url = (OANDA_PRACTICE_BASE if practice else OANDA_LIVE_BASE).rstrip("/")
        self.account_id = account_id
        self._token = token
        self._session = session or requests.Session()

    def get_balance(self) -> float:
        balance, _ = self._account_summary()
        return balance

    def get_equity(self) -> float:
        balance, nav = self._account_summary()
        return nav if nav > 0 else balance

    def get_open_positions(self) -> list[Position]:
        resp = self._request("GET", f"/v3/accounts/{self.account_id}/openPositions") or {}
        out: list[Position] = []
        for raw in resp.get("positions") or []:
            instrument = raw.get("instrument", "")
            for key, side in (("long", "BUY"), ("short", "SELL")):
                leg = raw.get(key) or {}
                units = leg.get("units", "")
                if _parse_float(units) != 0:
                    out.append(
                        _position(
                            instrument,
                            side,
                            units,
                            leg.get("averagePrice", ""),
                            leg.get("unrealizedPL", ""),
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
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        units = oanda_units_from_quantity(quantity)
        if order_type == "SELL":
            units = -units
        body = {
            "order": {
                "type": "MARKET",
                "instrument": symbol_to_oanda(symbol),
                "units": str(units),
                "stopLossOnFill": {"price": f"{stop_loss:.5f}"},
                "takeProfitOnFill": {"price": f"{take_profit:.5f}"},
            }
        }
        resp = self._request("POST", f"/v3/accounts/{self.account_id}/orders", body) or {}
        fill = resp.get("orderFillTransaction") or {}
        fill_id = fill.get("id", "")
        if not fill_id:
            raise RuntimeError("OANDA: order submitted but no fill transaction")
        side = order_type
        qty = _parse_float(fill.get("units", ""))
        if qty < 0:
            qty = -qty
            side = "SELL"
        return Position(
            id=fill_id,
            broker_id=fill_id,
            symbol=oanda_to_symbol(fill.get("instrument", "")),
            type=side,
            quantity=qty,
            entry_price=_parse_float(fill.get("price", "")),
            stop_loss=stop_loss,
            take_profit=take_profit,
        )

    def close_position(self, position_id: str) -> None:
        """Close a whole side of an instrument; ids have the form SYMBOL|SIDE."""
        parts = position_id.split("|")
        if len(parts) != 2:
            raise ValueError(
                f"OANDA close: unrecognized position id {position_id} (expected SYMBOL|SIDE)"
            )
        instrument = symbol_to_oanda(parts[0])
        body = {"longUnits": "ALL"} if parts[1] == "BUY" else {"shortUnits": "ALL"}
        self._request("PUT", f"/v3/accounts/{self.account_id}/positions/{instrument}/close", body)

    def close_all_positions(self) -> None:
        for position in self.get_open_positions():
            self.close_position(position.id)

    def modify_stop_loss(self, position_id: str, new_stop_loss: float) -> None:
        raise BrokerError(
            ErrorKind.VALIDATION,
            "OANDA stop-loss modify is not supported in this release — close and reopen the trade",
        )

    def modify_take_profit(self, position_id: str, new_take_profit: float) -> None:
        raise BrokerError(
            ErrorKind.VALIDATION,
            "OANDA take-profit modify is not supported in this release — close and reopen the trade",
        )

    def get_position_by_id(self, position_id: str) -> Position:
        for position in self.get_open_positions():
            if position_id in (position.id, position.broker_id):
                return position
        raise PositionNotFoundError(position_id)

    def _account_summary(self) -> tuple[float, float]:
        resp = self._request("GET", f"/v3/accounts/{self.account_id}/summary") or {}
        account = resp.get("account") or {}
        return _parse_float(account.get("balance", "")), _parse_float(account.get("NAV", ""))

    def _request(self, method: str, path: str, body: Any = None) -> Any:
        headers = {"Authorization": f"Bearer {self._token}"}
        data = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(body)
        resp = self._session.request(
            method, self.base_url + path, data=data, headers=headers, timeout=_TIMEOUT
        )
        if not 200 <= resp.status_code < 300:
            raise classify_error(
                "oanda",
                RuntimeError(f"OANDA API {method} {path}: {_truncate(resp.text, 300)}"),
            )
        if not resp.content:
            return None
        return resp.json()