"""Roles and permissions for dashboard access control."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Access tier of a user."""

    ADMIN = "admin"
    USER = "user"


PERM_STATUS_VIEW = "status:view"
PERM_ACCOUNT_VIEW = "account:view"
PERM_POSITIONS_VIEW = "positions:view"
PERM_TRADES_VIEW = "trades:view"
PERM_SUBSCRIPTION_VIEW = "subscription:view"
PERM_BROKER_VIEW = "broker:view"
PERM_BROKER_MANAGE = "broker:manage"
PERM_BROKER_TEST = "broker:test"

PERM_ADMIN_STATS = "admin:stats"
PERM_ADMIN_USERS_VIEW = "admin:users:view"
PERM_ADMIN_USERS_BLOCK = "admin:users:block"
PERM_ADMIN_USERS_REVOKE = "admin:users:revoke"
PERM_ADMIN_ACTIVATE = "admin:activate"
PERM_ADMIN_TRADES_VIEW = "admin:trades:view"
PERM_ADMIN_SIGNALS_BROADCAST = "admin:signals:broadcast"

USER_PERMISSIONS: tuple[str, ...] = (
    PERM_STATUS_VIEW,
    PERM_ACCOUNT_VIEW,
    PERM_POSITIONS_VIEW,
    PERM_TRADES_VIEW,
    PERM_SUBSCRIPTION_VIEW,
    PERM_BROKER_VIEW,
    PERM_BROKER_MANAGE,
    PERM_BROKER_TEST,
)

ADMIN_PERMISSIONS: tuple[str, ...] = USER_PERMISSIONS + (
    PERM_ADMIN_STATS,
    PERM_ADMIN_USERS_VIEW,
    PERM_ADMIN_USERS_BLOCK,
    PERM_ADMIN_USERS_REVOKE,
    PERM_ADMIN_ACTIVATE,
    PERM_ADMIN_TRADES_VIEW,
    PERM_ADMIN_SIGNALS_BROADCAST,
)


def resolve_role(is_admin: bool) -> Role:
    """Return the admin role for admins, the user role otherwise."""
    return Role.ADMIN if is_admin else Role.USER


def permissions_for(role: Role | str) -> list[str]:
    """Return a fresh list of the permissions a role grants."""
    if role == Role.ADMIN:
        return list(ADMIN_PERMISSIONS)
    return list(USER_PERMISSIONS)


def has_permission(role: Role | str, perm: str) -> bool:
    """Report whether the role grants the permission."""
    return perm in permissions_for(role)


@dataclass
class Profile:
    """Access profile handed to clients so they can shape their UI."""

    telegram_id: int
    role: Role
    is_admin: bool
    permissions: list[str] = field(default_factory=list)
    is_blocked: bool = False
    can_trade: bool = False
    trade_message: str = ""

    def as_dict(self) -> dict[str, Any]:
        """JSON-ready mapping; an empty trade message is left out."""
        out: dict[str, Any] = {
            "telegram_id": self.telegram_id,
            "role": self.role.value,
            "is_admin": self.is_admin,
            "permissions": list(self.permissions),
            "is_blocked": self.is_blocked,
            "can_trade": self.can_trade,
        }
        if self.trade_message:
            out["trade_message"] = self.trade_message
        return out