"""Saving, validating and loading a user's broker connection."""

from __future__ import annotations

import contextlib
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Protocol, runtime_checkable

from marketmamba.accounts import AccountSyncError, account_store_from, sync_from_broker
from marketmamba.broker import Broker
from marketmamba.catalog import (
    Brand,
    Field,
    brand_by_id,
    metaapi_brand_fields,
    resolve_brand_connection,
)
from marketmamba.metaapi import apply_shared_metaapi_token
from marketmamba.registry import get_adapter, is_live_provider, new_from_provider

Encrypt = Callable[[Mapping[str, str]], str]
Decrypt = Callable[[str], Mapping[str, str]]


@dataclass
class BrokerConnection:
    """A user's stored broker link with encrypted credentials."""

    id: str
    user_id: int
    provider: str
    label: str = ""
    credentials_enc: str = ""
    is_active: bool = True
    is_primary: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = field(default=None)


@runtime_checkable
class ConnectionStore(Protocol):
    """Storage of encrypted broker connections per user."""

    def upsert_broker_connection(self, conn: BrokerConnection) -> None: ...

    def get_active_broker_connection(self, user_id: int) -> BrokerConnection | None: ...


def _generate_id(prefix: str) -> str:
    return f"{prefix}_{time.time_ns()}_{secrets.token_hex(4)}"


def _default_label(provider: str, creds: Mapping[str, str]) -> str:
    if provider == "mock":
        return "Demo account"
    if provider == "metaapi":
        server = str(creds.get("server") or "").strip()
        return f"MT5 {server}" if server else "MetaAPI MT5"
    return provider


def sync_trading_account(store: Any, user_id: int, provider: str, broker: Broker | None) -> None:
    """Upsert the user's account row from the broker's live balances."""
    accounts = account_store_from(store)
    if accounts is None:
        raise AccountSyncError("account storage unavailable")
    if broker is None:
        raise AccountSyncError("broker unavailable")
    if not provider:
        provider = "mock"
    try:
        sync_from_broker(accounts, user_id, provider, broker)
    except Exception as exc:
        raise AccountSyncError(f"account sync: {exc}") from exc


def _save(
    store: ConnectionStore,
    encrypt: Encrypt,
    user_id: int,
    brand_id: str,
    provider: str,
    label: str,
    creds: Mapping[str, str] | None,
) -> BrokerConnection:
    creds = dict(creds or {})
    if brand_id:
        resolved = resolve_brand_connection(brand_id, label, creds)
        provider, creds, label = resolved.provider, resolved.credentials, resolved.label
    if not is_live_provider(provider):
        raise ValueError(f'broker "{provider}" is not available yet — use mock (demo)')
    if not label:
        label = _default_label(provider, creds)
    creds = dict(apply_shared_metaapi_token(creds))
    validate_credentials(provider, creds)
    broker = new_from_provider(provider, creds)
    encrypted = encrypt(creds)
    now = datetime.now(timezone.utc)
    conn = BrokerConnection(
        id=_generate_id("broker"),
        user_id=user_id,
        provider=provider,
        label=label,
        credentials_enc=encrypted,
        is_active=True,
        is_primary=True,
        created_at=now,
        updated_at=now,
    )
    store.upsert_broker_connection(conn)
    # Best effort: the account row also syncs later if the broker is offline now.
    with contextlib.suppress(Exception):
        sync_trading_account(store, user_id, provider, broker)
    return conn


def save_connection(
    store: ConnectionStore,
    encrypt: Encrypt,
    user_id: int,
    provider: str,
    label: str,
    creds: Mapping[str, str] | None,
) -> BrokerConnection:
    """Validate, encrypt and activate credentials for a technical provider."""
    return _save(store, encrypt, user_id, "", provider, label, creds)


def save_brand_connection(
    store: ConnectionStore,
    encrypt: Encrypt,
    user_id: int,
    brand_id: str,
    label: str,
    creds: Mapping[str, str] | None,
) -> BrokerConnection:
    """Save a connection chosen by user-facing brand id (deriv, exness, ...)."""
    return _save(store, encrypt, user_id, brand_id, "", label, creds)


def validate_credentials(provider: str, creds: Mapping[str, str] | None) -> None:
    """Check the fields a technical provider requires."""
    adapter = get_adapter(provider)
    if adapter is None or adapter.validate is None:
        raise ValueError(f"unknown broker provider: {provider}")
    adapter.validate(dict(creds or {}))


def _brand_fields(brand: Brand) -> tuple[Field, ...]:
    if not brand.uses_metaapi or brand.adapter_id != "metaapi":
        return brand.fields
    placeholder = next(
        (f.placeholder for f in brand.fields if f.key == "server" and f.placeholder),
        "YourBroker-Demo",
    )
    return metaapi_brand_fields(placeholder)


def validate_brand_credentials(brand_id: str, creds: Mapping[str, str] | None) -> None:
    """Check credentials for a catalog brand, presets included."""
    brand = brand_by_id(brand_id)
    if brand is None:
        raise ValueError(f"unknown broker brand: {brand_id}")
    merged = resolve_brand_connection(brand_id, "", creds).credentials
    adapter = get_adapter(brand.adapter_id)
    if adapter is not None and adapter.validate is not None:
        adapter.validate(merged)
    for f in _brand_fields(brand):
        if f.required and not merged.get(f.key):
            raise ValueError(f"{f.label} is required")


def resolve_broker(
    store: ConnectionStore, user_id: int, decrypt: Decrypt, env_provider: str
) -> tuple[Broker, str]:
    """Return the user's stored broker, or the environment's provider, and its name."""
    conn = store.get_active_broker_connection(user_id)
    if conn is not None:
        creds = dict(decrypt(conn.credentials_enc) or {})
        return new_from_provider(conn.provider, creds), conn.provider
    provider = env_provider or "mock"
    return new_from_provider(provider, None), provider


def resolve_broker_and_sync(
    store: ConnectionStore, user_id: int, decrypt: Decrypt, env_provider: str
) -> Broker:
    """Resolve the user's broker and refresh the stored account from it."""
    broker, provider = resolve_broker(store, user_id, decrypt, env_provider)
    sync_trading_account(store, user_id, provider, broker)
    return broker