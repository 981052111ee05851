"""Broker interface, open positions and an in-memory demo broker."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class Position:
    """An open trade as reported by a broker."""

    id: str
    broker_id: str = ""
    symbol: str = ""
    type: str = ""
    quantity: float = 0.0
    entry_price: float = 0.0
    current_price: float = 0.0
    stop_loss: float = 0.0
    take_profit: float = 0.0
    profit: float = 0.0
    profit_pct: float = 0.0


class PositionNotFoundError(LookupError):
    """No open position has the requested id."""

    def __init__(self, position_id: str):
        super().__init__(f"position not found: {position_id}")
        self.position_id = position_id


@runtime_checkable
class Broker(Protocol):
    """Operations every broker adapter offers."""

    def get_balance(self) -> float: ...

    def get_equity(self) -> float: ...

    def get_open_positions(self) -> list[Position]: ...

    def open_market_order(
        self,
        symbol: str,
        order_type: str,
        quantity: float,
        stop_loss: float,
        take_profit: float,
    ) -> Position: ...

    def close_position(self, position_id: str) -> None: ...

    def close_all_positions(self) -> None: ...

    def modify_stop_loss(self, position_id: str, new_stop_loss: float) -> None: ...

    def modify_take_profit(self, position_id: str, new_take_profit: float) -> None: ...

    def get_position_by_id(self, position_id: str) -> Position: ...


class MockBroker:
    """Simulated broker account held in memory, for demos and tests."""

    def __init__(self, initial_balance: float):
        self._balance = initial_balance
        self._equity = initial_balance
        self._positions: dict[str, Position] = {}
        self._lock = threading.Lock()

    def get_balance(self) -> float:
        with self._lock:
            return self._balance

    def get_equity(self) -> float:
        with self._lock:
            return self._equity

    def get_open_positions(self) -> list[Position]:
        with self._lock:
            return list(self._positions.values())

    def open_market_order(
        self,
        symbol: str,
        order_type: str,
        quantity: float,
        stop_loss: float,
        take_profit: float,
    ) -> Position:
        """Open a position whose entry is the midpoint of stop loss and take profit."""
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        if stop_loss <= 0 or take_profit <= 0:
            raise ValueError("stop loss and take profit must be positive")

        if order_type == "BUY":
            entry_price = stop_loss + (take_profit - stop_loss) * 0.5
        else:
            entry_price = take_profit + (stop_loss - take_profit) * 0.5

        with self._lock:
            position_id = f"mock_pos_{len(self._positions) + 1}"
            position = Position(
                id=position_id,
                broker_id=position_id,
                symbol=symbol,
                type=order_type,
                quantity=quantity,
                entry_price=entry_price,
                stop_loss=stop_loss,
                take_profit=take_profit,
            )
            self._positions[position_id] = position
            return position

    def _get(self, position_id: str) -> Position:
        try:
            return self._positions[position_id]
        except KeyError:
            raise PositionNotFoundError(position_id) from None

    def close_position(self, position_id: str) -> None:
        with self._lock:
            self._get(position_id)
            del self._positions[position_id]

    def close_all_positions(self) -> None:
        with self._lock:
            self._positions = {}

    def modify_stop_loss(self, position_id: str, new_stop_loss: float) -> None:
        with self._lock:
            position = self._get(position_id)
            if new_stop_loss <= 0:
                raise ValueError("stop loss must be positive")
            position.stop_loss = new_stop_loss

    def modify_take_profit(self, position_id: str, new_take_profit: float) -> None:
        with self._lock:
            position = self._get(position_id)
            if new_take_profit <= 0:
                raise ValueError("take profit must be positive")
            position.take_profit = new_take_profit

    def get_position_by_id(self, position_id: str) -> Position:
        with self._lock:
            return self._get(position_id)

    def simulate_price(self, position_id: str, current_price: float) -> None:
        """Mark a position to the given price and recompute its profit."""
        with self._lock:
            position = self._get(position_id)
            position.current_price = current_price
            if position.type == "BUY":
                move = current_price - position.entry_price
            else:
                move = position.entry_price - current_price
            position.profit = move * position.quantity
            position.profit_pct = move / position.entry_price * 100