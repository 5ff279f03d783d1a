"""Ledger adapter layer - service wallet access over JSON-RPC."""

from tiny_faucet.adapters.ledger.base import AbstractLedgerClient
from tiny_faucet.adapters.ledger.factory import create_ledger_client
from tiny_faucet.adapters.ledger.web3_client import Web3LedgerClient

__all__ = [
    "AbstractLedgerClient",
    "Web3LedgerClient",
    "create_ledger_client",
]
