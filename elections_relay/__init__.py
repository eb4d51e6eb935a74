"""Relay and read-cache service for the ETH-Elections ledger contract."""

__version__ = "0.1.0"
