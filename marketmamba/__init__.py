"""Broker adapters, broker catalog, account sync, session tokens and access control for a trading-signal service."""

__version__ = "0.1.0"