"""User-facing broker brands and the technical broker types shown in the UI."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from marketmamba.metaapi import apply_shared_metaapi_token, uses_shared_metaapi_token
from marketmamba.registry import get_adapter, list_adapters


@dataclass(frozen=True)
class Field:
    """One input of a broker connection form."""

    key: str
    label: str
    type: str
    required: bool = False
    placeholder: str = ""

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "key": self.key,
            "label": self.label,
            "type": self.type,
            "required": self.required,
        }
        if self.placeholder:
            out["placeholder"] = self.placeholder
        return out


@dataclass(frozen=True)
class Brand:
    """A broker a user picks (Deriv, Exness), mapped to a technical adapter."""

    id: str
    display_name: str
    adapter_id: str
    status: str
    description: str
    fields: tuple[Field, ...] = ()
    credential_preset: dict[str, str] = field(default_factory=dict, hash=False)
    server_examples: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    docs_url: str = ""
    help_url: str = ""
    uses_metaapi: bool = False

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "display_name": self.display_name,
            "adapter_id": self.adapter_id,
            "status": self.status,
            "description": self.description,
            "fields": [f.as_dict() for f in self.fields],
        }
        if self.credential_preset:
            out["credential_preset"] = dict(self.credential_preset)
        if self.server_examples:
            out["server_examples"] = list(self.server_examples)
        if self.warnings:
            out["warnings"] = list(self.warnings)
        if self.docs_url:
            out["docs_url"] = self.docs_url
        if self.help_url:
            out["help_url"] = self.help_url
        out["uses_metaapi"] = self.uses_metaapi
        return out


@dataclass(frozen=True)
class BrokerType:
    """A technical adapter as listed for older API clients."""

    id: str
    name: str
    status: str
    description: str = ""
    fields: tuple[Field, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "fields": [f.as_dict() for f in self.fields],
        }


@dataclass
class ResolvedConnection:
    """Provider, merged credentials and label for a chosen brand."""

    provider: str
    credentials: dict[str, str]
    label: str


def metaapi_brand_fields(server_placeholder: str, token_required: bool | None = None) -> tuple[Field, ...]:
    """Form fields of an MT broker reached through MetaAPI.

    The token is required unless the operator supplies a shared one.
    """
    if token_required is None:
        token_required = not uses_shared_metaapi_token()
    return (
        Field("metaapi_token", "MetaAPI token", "password", token_required,
              "From app.metaapi.cloud → API access"),
        Field("login", "MT login (account number)", "text", True),
        Field("password", "MT password", "password", True),
        Field("server", "MT server name", "text", True, server_placeholder),
        Field("platform", "Platform (mt5 or mt4)", "text", False, "mt5"),
        Field("metaapi_account_id", "MetaAPI account id (optional)", "text", False),
        Field("region", "MetaAPI region", "text", False, "new-york"),
        Field("keywords", "Broker keywords (optional)", "text", False),
    )


_MOCK_FIELDS = (Field("initial_balance", "Starting balance (USD)", "text", False, "10000"),)
_OANDA_FIELDS = (
    Field("api_token", "API Token", "password", True),
    Field("account_id", "Account ID", "text", True),
    Field("practice", "Practice account", "boolean", False),
)
_METAAPI_HELP = "https://app.metaapi.cloud/"

_ALL_BRANDS: tuple[Brand, ...] = (
    Brand(
        id="mock",
        display_name="Demo (Mock)",
        adapter_id="mock",
        status="live",
        description="Simulated $10,000 account for testing. No real money.",
        fields=_MOCK_FIELDS,
        warnings=("Market Mamba is not a broker. Demo only — no live funds.",),
    ),
    Brand(
        id="oanda",
        display_name="OANDA",
        adapter_id="oanda",
        status="live",
        description="OANDA v20 REST API (practice or live).",
        fields=_OANDA_FIELDS,
        help_url="https://www.oanda.com/",
        warnings=("OANDA is not available in all countries. Use Demo or MetaAPI if signup is blocked.",),
    ),
    Brand(
        id="deriv",
        display_name="Deriv",
        adapter_id="metaapi",
        uses_metaapi=True,
        status="live",
        description="Connect your Deriv MT account via MetaAPI (MT4/MT5).",
        credential_preset={"platform": "mt5", "keywords": "Deriv.com Limited"},
        server_examples=("Deriv-Demo", "Deriv-Server", "Deriv-Server-02"),
        fields=metaapi_brand_fields("Deriv-Demo", True),
        help_url=_METAAPI_HELP,
        docs_url="/docs/BROKER_CONNECT.md#deriv",
        warnings=(
            "Market Mamba is not a broker — you connect your own Deriv account.",
            "First connection may take 1–3 minutes while MetaAPI deploys your MT account.",
            "Synthetic indices on MT may differ from Deriv app API.",
        ),
    ),
    Brand(
        id="exness",
        display_name="Exness",
        adapter_id="metaapi",
        uses_metaapi=True,
        status="live",
        description="Connect your Exness MT account via MetaAPI (MT4/MT5).",
        credential_preset={"platform": "mt5"},
        server_examples=("Exness-MT5Trial", "Exness-MT5Real", "Exness-Trial"),
        fields=metaapi_brand_fields("Exness-MT5Trial", True),
        help_url=_METAAPI_HELP,
        docs_url="/docs/BROKER_CONNECT.md#exness",
        warnings=(
            "Market Mamba is not a broker — you connect your own Exness account.",
            "Use the exact MT server name from Exness → My accounts.",
        ),
    ),
    Brand(
        id="tickmill",
        display_name="Tickmill",
        adapter_id="metaapi",
        uses_metaapi=True,
        status="live",
        description="Connect your Tickmill MT account via MetaAPI (MT4/MT5).",
        credential_preset={"platform": "mt5"},
        server_examples=("Tickmill-Demo", "Tickmill-Live", "TickmillUK-Demo"),
        fields=metaapi_brand_fields("Tickmill-Demo", True),
        help_url=_METAAPI_HELP,
        docs_url="/docs/BROKER_CONNECT.md#tickmill",
        warnings=(
            "Market Mamba is not a broker — you connect your own Tickmill account.",
            "Copy the MT server name from Tickmill client area.",
        ),
    ),
    Brand(
        id="any_mt",
        display_name="Any MT broker",
        adapter_id="metaapi",
        uses_metaapi=True,
        status="live",
        description="Any MT4/MT5 broker supported by MetaAPI — enter your broker's server name.",
        credential_preset={"platform": "mt5"},
        server_examples=("Deriv-Demo", "Exness-MT5Trial", "Tickmill-Demo", "XMGlobal-MT5", "YourBroker-Server"),
        fields=metaapi_brand_fields("YourBroker-Demo", True),
        help_url=_METAAPI_HELP,
        warnings=(
            "Use the exact MT server name from your broker (copy from MT4/MT5 or broker website).",
            "Not sure? Pick Deriv, Exness, or Tickmill above if that is your broker.",
        ),
    ),
    Brand(
        id="icmarkets",
        display_name="IC Markets (MT)",
        adapter_id="metaapi",
        uses_metaapi=True,
        status="live",
        description="IC Markets via MetaAPI (or use “Any MT broker” for other servers).",
        credential_preset={"platform": "mt5"},
        server_examples=("ICMarketsSC-Demo", "ICMarketsSC-MT5"),
        fields=metaapi_brand_fields("ICMarketsSC-Demo", True),
        help_url=_METAAPI_HELP,
        warnings=("Use your broker's exact MT server name.",),
    ),
)

_enabled_brand_ids: list[str] = []


def set_enabled_brands(ids: list[str] | None) -> None:
    """Limit visible brands to these ids; an empty list enables all."""
    global _enabled_brand_ids
    _enabled_brand_ids = list(ids or [])


def _brand_enabled(brand_id: str) -> bool:
    if not _enabled_brand_ids:
        return True
    wanted = brand_id.strip().lower()
    return any(e.strip().lower() == wanted for e in _enabled_brand_ids)


def brand_by_id(brand_id: str) -> Brand | None:
    """Return a copy of the brand definition, or None."""
    for brand in _ALL_BRANDS:
        if brand.id == brand_id:
            return replace(brand, credential_preset=dict(brand.credential_preset))
    return None


def _fields_for_brand(brand: Brand) -> tuple[Field, ...]:
    if not brand.uses_metaapi or brand.adapter_id != "metaapi":
        return brand.fields
    placeholder = next(
        (f.placeholder for f in brand.fields if f.key == "server" and f.placeholder),
        "YourBroker-Demo",
    )
    return metaapi_brand_fields(placeholder, not uses_shared_metaapi_token())


def supported_brands() -> list[Brand]:
    """Enabled brands whose adapter is not disabled, with current form fields."""
    out: list[Brand] = []
    for brand in _ALL_BRANDS:
        if not _brand_enabled(brand.id):
            continue
        adapter = get_adapter(brand.adapter_id)
        if adapter is not None and adapter.status == "disabled":
            continue
        status = brand.status
        if (
            status == "live"
            and adapter is not None
            and adapter.status != "live"
            and brand.adapter_id != "mock"
        ):
            status = adapter.status
        out.append(
            replace(
                brand,
                status=status,
                fields=_fields_for_brand(brand),
                credential_preset=dict(brand.credential_preset),
            )
        )
    return out


def metaapi_brands() -> list[Brand]:
    """Enabled brands that connect through the MetaAPI MT bridge."""
    return [b for b in supported_brands() if b.uses_metaapi and b.adapter_id == "metaapi"]


def resolve_brand_connection(
    brand_id: str, label: str, creds: Mapping[str, str] | None
) -> ResolvedConnection:
    """Map a brand and user credentials to provider, merged credentials and label."""
    brand = brand_by_id(brand_id)
    if brand is None:
        raise ValueError(f"unknown broker brand: {brand_id}")
    if not _brand_enabled(brand_id):
        raise ValueError(f"broker {brand.display_name} is not enabled on this server")
    merged: dict[str, str] = dict(brand.credential_preset)
    for key, value in (creds or {}).items():
        if str(value).strip():
            merged[key] = value
    merged = dict(apply_shared_metaapi_token(merged))
    merged["brand_id"] = brand_id
    out_label = label
    if not out_label:
        out_label = brand.display_name
        server = str(merged.get("server") or "").strip()
        if server:
            out_label = f"{brand.display_name} · {server}"
    return ResolvedConnection(provider=brand.adapter_id, credentials=merged, label=out_label)


_TYPE_FALLBACKS: dict[str, tuple[str, tuple[Field, ...]]] = {
    "mock": ("Simulated account for testing. No real money.", _MOCK_FIELDS),
    "oanda": ("OANDA v20 REST API (practice or live).", _OANDA_FIELDS),
    "alpaca": (
        "Alpaca Markets API.",
        (
            Field("api_key", "API Key", "password", True),
            Field("api_secret", "API Secret", "password", True),
        ),
    ),
    "custom": (
        "Your own broker adapter HTTP endpoint.",
        (
            Field("base_url", "Base URL", "url", True),
            Field("api_key", "API Key", "password", True),
        ),
    ),
}


def supported_broker_types() -> list[BrokerType]:
    """Technical adapters, described for backward-compatible API clients."""
    out: list[BrokerType] = []
    for adapter in list_adapters():
        brand = brand_by_id(adapter.id)
        if brand is not None:
            description, fields = brand.description, brand.fields
        elif adapter.id == "metaapi":
            description = "MT4/MT5 via MetaAPI — Deriv, Exness, Tickmill, etc."
            fields = metaapi_brand_fields("Deriv-Demo")
        else:
            description, fields = _TYPE_FALLBACKS.get(adapter.id, ("", ()))
        out.append(
            BrokerType(
                id=adapter.id,
                name=adapter.name,
                status=adapter.status,
                description=description,
                fields=fields,
            )
        )
    return out