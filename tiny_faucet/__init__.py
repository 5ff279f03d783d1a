"""Tempo Tiny Faucet - rate-limited testnet token dispenser."""

__version__ = "0.1.0"
