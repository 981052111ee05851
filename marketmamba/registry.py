"""Registry of technical broker adapters and construction of brokers from them."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from marketmamba.broker import Broker, MockBroker
from marketmamba.metaapi import MetaApiBroker, validate_metaapi_credentials
from marketmamba.oanda import OandaBroker
from marketmamba.symbols import BrokerCapabilities, default_capabilities

Credentials = dict[str, str]

DEFAULT_MOCK_BALANCE = 10000.0


@dataclass
class Adapter:
    """A technical broker integration (mock, oanda, metaapi, ...)."""

    id: str
    name: str
    status: str
    new: Callable[[Optional[Mapping[str, str]]], Broker]
    validate: Optional[Callable[[Optional[Mapping[str, str]]], None]] = None
    capabilities: BrokerCapabilities = field(default_factory=default_capabilities)


_lock = threading.RLock()
_adapters: dict[str, Adapter] = {}


def register(adapter: Adapter | None) -> None:
    """Add or replace an adapter; adapters without an id are ignored."""
    if adapter is None or not adapter.id:
        return
    with _lock:
        _adapters[adapter.id] = adapter


def get_adapter(adapter_id: str) -> Adapter | None:
    """Return the adapter registered under the id, or None."""
    with _lock:
        return _adapters.get(adapter_id)


def list_adapters() -> list[Adapter]:
    """Return all registered adapters sorted by id."""
    with _lock:
        return sorted(_adapters.values(), key=lambda a: a.id)


def adapter_capabilities(provider: str) -> BrokerCapabilities:
    """Capabilities of a provider, or the defaults for an unknown one."""
    adapter = get_adapter(provider)
    if adapter is None:
        return default_capabilities()
    return adapter.capabilities


def new_from_provider(provider: str, creds: Mapping[str, str] | None) -> Broker:
    """Build a broker for a live technical provider."""
    adapter = get_adapter(provider)
    if adapter is None:
        raise ValueError(f"unknown broker provider: {provider}")
    if adapter.status != "live":
        raise ValueError(f'broker "{provider}" is not available yet — use mock (demo)')
    return adapter.new(creds)


def parse_credentials_json(raw: str) -> Credentials:
    """Parse a JSON object of string credentials."""
    data = json.loads(raw)
    if data is None:
        return {}
    if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
        raise ValueError("credentials must be a JSON object of strings")
    return dict(data)


def is_live_provider(provider: str) -> bool:
    """Report whether users may save this technical provider."""
    adapter = get_adapter(provider)
    return adapter is not None and adapter.status == "live"


def _new_mock(creds: Mapping[str, str] | None) -> Broker:
    balance = DEFAULT_MOCK_BALANCE
    raw = (creds or {}).get("initial_balance") or ""
    if raw:
        try:
            value = float(raw)
        except ValueError:
            value = 0.0
        if value > 0:
            balance = value
    return MockBroker(balance)


def _validate_mock(creds: Mapping[str, str] | None) -> None:
    """The demo broker accepts any credentials mapping, including none."""
    if creds is not None and not isinstance(creds, Mapping):
        raise TypeError("mock credentials must be a mapping")


def _validate_oanda(creds: Mapping[str, str] | None) -> None:
    if creds is None:
        raise ValueError("OANDA credentials required")
    if not creds.get("api_token") or not creds.get("account_id"):
        raise ValueError("OANDA api_token and account_id are required")


def _unavailable(build_message: str, validate_message: str) -> tuple[Callable, Callable]:
    def build(creds: Mapping[str, str] | None) -> Broker:
        raise ValueError(build_message)

    def validate(creds: Mapping[str, str] | None) -> None:
        raise ValueError(validate_message)

    return build, validate


def _register_builtin() -> None:
    register(
        Adapter(
            id="mock",
            name="Mock (Demo)",
            status="live",
            new=_new_mock,
            validate=_validate_mock,
            capabilities=BrokerCapabilities(
                supports_modify_sl=True, supports_modify_tp=True, min_lot=0.01, lot_step=0.01
            ),
        )
    )
    register(
        Adapter(
            id="oanda",
            name="OANDA",
            status="live",
            new=lambda creds: OandaBroker(creds),
            validate=_validate_oanda,
            capabilities=BrokerCapabilities(
                supports_modify_sl=False, supports_modify_tp=False, min_lot=0.01, lot_step=0.01
            ),
        )
    )
    register(
        Adapter(
            id="metaapi",
            name="MetaAPI (MT4/MT5)",
            status="live",
            new=lambda creds: MetaApiBroker(creds),
            validate=validate_metaapi_credentials,
            capabilities=BrokerCapabilities(
                supports_modify_sl=True,
                supports_modify_tp=True,
                min_lot=0.01,
                lot_step=0.01,
                requires_mt_bridge=True,
            ),
        )
    )
    alpaca_new, alpaca_validate = _unavailable(
        "Alpaca adapter is not available yet — use Mock for now",
        "Alpaca is not available yet",
    )
    register(
        Adapter(
            id="alpaca",
            name="Alpaca",
            status="coming_soon",
            new=alpaca_new,
            validate=alpaca_validate,
            capabilities=default_capabilities(),
        )
    )
    custom_new, custom_validate = _unavailable(
        "custom REST adapter is not available yet — use Mock for now",
        "custom REST is not available yet",
    )
    register(
        Adapter(
            id="custom",
            name="Custom REST",
            status="coming_soon",
            new=custom_new,
            validate=custom_validate,
            capabilities=default_capabilities(),
        )
    )


_register_builtin()