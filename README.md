# marketmamba

The trading core of a signal and auto-trading service. It contains:

- **Broker adapters** that all follow the `Broker` protocol in `marketmamba.broker`:
  - `MockBroker`, a simulated demo account held in memory.
  - `OandaBroker`, for the OANDA v20 REST API (practice or live).
  - `MetaApiBroker`, for MT4/MT5 accounts reached through the MetaAPI cloud bridge (Deriv, Exness, Tickmill and other MT brokers).
- **An adapter registry** (`mock`, `oanda`, `metaapi`, plus `alpaca` and `custom`, which are listed as `coming_soon` and cannot be built).
- **A broker catalog** of user-facing brands mapped to adapters, with the credential form fields for each brand.
- **Connection handling**: validating, encrypting, storing and resolving a user's broker connection, and syncing the account balance from the broker.
- **Error classification**: broker failures are sorted into kinds (auth, symbol, margin, rate limit, unavailable, validation, unknown), and a retry rule is given for each kind.
- **Sessions and access control**: HMAC-SHA256 signed session tokens, bcrypt password hashing, and role-based permissions.

## Install

```
pip install marketmamba
```

For development:

```
pip install -e ".[test]"
pytest
```

## Usage

### Demo broker

```python
from marketmamba.broker import MockBroker

broker = MockBroker(10_000)
pos = broker.open_market_order("EURUSD", "BUY", 0.1, 1.0800, 1.0900)
# The entry price is the midpoint of the stop loss and the take profit.
broker.simulate_price(pos.id, 1.0870)
print(broker.get_position_by_id(pos.id).profit)
```

An unknown position id raises `PositionNotFoundError`. Invalid quantities or prices raise `ValueError`.

### Building a broker from the registry

```python
from marketmamba.registry import new_from_provider, list_adapters, adapter_capabilities

broker = new_from_provider("mock", {"initial_balance": "5000"})
print(broker.get_balance())                      # 5000.0
print([a.id for a in list_adapters()])           # sorted by id
print(adapter_capabilities("oanda").supports_modify_sl)  # False
```

If the provider is unknown or not `live`, `new_from_provider` raises `ValueError`.

### Resolving a catalog brand

```python
from marketmamba.catalog import resolve_brand_connection, supported_brands

resolved = resolve_brand_connection("deriv", "", {
    "metaapi_token": "token",
    "login": "1",
    "password": "password",
    "server": "Deriv-Demo",
})
print(resolved.provider)                  # metaapi
print(resolved.credentials["platform"])   # mt5 (brand preset)
print(resolved.label)                     # Deriv · Deriv-Demo
```

`set_enabled_brands([...])` limits which brands are visible. An empty list enables all brands. `marketmamba.metaapi.set_shared_metaapi_token(...)` sets an operator token. It is added to MT credentials that carry no token of their own, and it makes the token field optional in the brand forms.

### Saving and resolving a connection

`marketmamba.connect` works with a store object that you supply. The store implements `ConnectionStore` (`upsert_broker_connection`, `get_active_broker_connection`). To sync account balances, it also implements `AccountStore` from `marketmamba.accounts` (`create_account`, `get_account_by_user`, `update_account`). The package does no encryption itself. You pass an `encrypt` callable, which turns a credentials mapping into a string, and a `decrypt` callable, which does the reverse.

```python
from marketmamba.connect import save_connection, resolve_broker_and_sync

conn = save_connection(store, encrypt, user_id=123, provider="mock", label="",
                       creds={"initial_balance": "5000"})
broker = resolve_broker_and_sync(store, 123, decrypt, env_provider="mock")
```

### Session tokens and passwords

```python
from datetime import timedelta
from marketmamba.session import issue, verify
from marketmamba.password import hash_password, check_password

token = issue("secret", 42, timedelta(days=30))
assert verify("secret", token) == 42     # raises InvalidSessionError if bad or expired

hashed = hash_password("password")       # at least 8 bytes
assert check_password(hashed, "password")
```

### Permissions

```python
from marketmamba.acl import Role, has_permission, resolve_role

has_permission(Role.USER, "trades:view")    # True
has_permission(Role.USER, "admin:stats")    # False
resolve_role(True)                          # Role.ADMIN
```

### Errors, symbols and lots

```python
from marketmamba.errors import classify_error, is_retryable
from marketmamba.symbols import metaapi_symbol_candidates, normalize_lots, default_capabilities

err = classify_error("metaapi", RuntimeError("401 unauthorized"))   # BrokerError, kind AUTH
is_retryable(classify_error("metaapi", RuntimeError("timeout")))    # True

metaapi_symbol_candidates("EURUSD")            # ['frxEURUSD', 'EURUSD', 'EURUSDm']
normalize_lots(default_capabilities(), 0.005)  # 0.01 (the minimum lot)
normalize_lots(default_capabilities(), 0.156)  # rounded down to the 0.01 step, about 0.15
```

## Modules

| Module | Contents |
| --- | --- |
| `marketmamba.acl` | `Role`, permissions, `Profile` |
| `marketmamba.password` | bcrypt hashing and checking |
| `marketmamba.session` | Signed session tokens, `InvalidSessionError` |
| `marketmamba.accounts` | `Account`, `AccountStore`, `sync_from_broker` |
| `marketmamba.errors` | `ErrorKind`, `BrokerError`, classification and retry rules |
| `marketmamba.symbols` | `BrokerCapabilities`, symbol mapping, lot normalisation |
| `marketmamba.broker` | The `Broker` protocol, `Position`, `MockBroker` |
| `marketmamba.oanda` | `OandaBroker` |
| `marketmamba.metaapi` | `MetaApiBroker` and the shared platform token |
| `marketmamba.registry` | `Adapter`, the registry and the broker factory |
| `marketmamba.catalog` | `Brand`, `Field`, `BrokerType`, brand resolution |
| `marketmamba.connect` | `BrokerConnection`, `ConnectionStore`, saving, validating and resolving connections |

## What this package does not do

The package is a library only. It has no command-line program, no web server or HTTP API, and no Telegram bot. It includes no database storage: stores are protocols that you implement. It includes no credential encryption: you supply the `encrypt` and `decrypt` callables. It generates no signals, manages no subscriptions or payments, and does not check risk limits. The library makes network calls only through `OandaBroker` and `MetaApiBroker`.