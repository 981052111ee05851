"""Symbol naming per broker and lot-size normalisation."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class BrokerCapabilities:
    """Optional features and lot constraints of a broker adapter."""

    supports_modify_sl: bool = False
    supports_modify_tp: bool = False
    min_lot: float = 0.0
    lot_step: float = 0.0
    requires_mt_bridge: bool = False


def default_capabilities() -> BrokerCapabilities:
    """Capabilities assumed for an adapter that declares none."""
    return BrokerCapabilities(
        supports_modify_sl=True,
        supports_modify_tp=True,
        min_lot=0.01,
        lot_step=0.01,
    )


_METAAPI_KNOWN = {
    "EURUSD": ["frxEURUSD", "EURUSD", "EURUSDm"],
    "GBPUSD": ["frxGBPUSD", "GBPUSD"],
    "USDJPY": ["frxUSDJPY", "USDJPY"],
    "BTCUSD": ["cryBTCUSD", "BTCUSD"],
}


def metaapi_symbol_candidates(symbol: str) -> list[str]:
    """Broker symbol names to try, in order, for a canonical pair."""
    s = symbol.strip().upper()
    if s in _METAAPI_KNOWN:
        return list(_METAAPI_KNOWN[s])
    if s.startswith(("FRX", "CRY")):
        return [s]
    return ["frx" + s, s]


def metaapi_to_canonical(sym: str) -> str:
    """Map a broker symbol back to its canonical form (EURUSD)."""
    s = sym.strip()
    low = s.lower()
    if low.startswith(("frx", "cry")) and len(s) > 3:
        return s[3:].upper()
    return s.upper()


def symbol_to_oanda(symbol: str) -> str:
    """Map a canonical symbol to an OANDA instrument name (EUR_USD)."""
    s = symbol.strip().upper()
    if "_" in s:
        return s
    if len(s) == 6:
        return f"{s[:3]}_{s[3:]}"
    if "BTC" in s:
        return "BTC_USD"
    return s


def oanda_to_symbol(instrument: str) -> str:
    """Map an OANDA instrument name to its canonical symbol."""
    return instrument.replace("_", "")


def normalize_symbol_for_provider(provider: str, canonical: str) -> str:
    """Broker-native symbol used when placing an order."""
    if provider == "oanda":
        return symbol_to_oanda(canonical)
    if provider == "metaapi":
        candidates = metaapi_symbol_candidates(canonical)
        return candidates[0] if candidates else canonical
    return canonical.strip().upper()


def normalize_lots(caps: BrokerCapabilities, lots: float) -> float:
    """Round a lot size down to the adapter's step, never below its minimum."""
    minimum = caps.min_lot if caps.min_lot > 0 else 0.01
    step = caps.lot_step if caps.lot_step > 0 else 0.01
    if lots < minimum:
        return minimum
    steps = math.floor((lots - minimum) / step)
    return minimum + steps * step