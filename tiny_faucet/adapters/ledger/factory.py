"""Factory for ledger client instances."""

from tiny_faucet.adapters.ledger.base import AbstractLedgerClient
from tiny_faucet.adapters.ledger.web3_client import Web3LedgerClient
from tiny_faucet.core.config import TEMPO_TOKENS, LedgerSettings, settings
from tiny_faucet.core.errors import ValidationAppError


def create_ledger_client(ledger_settings: LedgerSettings | None = None) -> AbstractLedgerClient:
    """Instantiate the service wallet client from configuration.

    Args:
        ledger_settings: Optional settings; defaults to the global settings.

    Returns:
        AbstractLedgerClient: Configured ledger client.

    Raises:
        ValidationAppError: If the RPC URL or the private key is missing.
    """
    cfg = ledger_settings or settings.ledger

    if not cfg.rpc_url:
        raise ValidationAppError(
            code="ledger_missing_rpc_url",
            message="LEDGER_RPC_URL is required",
        )
    if not cfg.private_key:
        raise ValidationAppError(
            code="ledger_missing_private_key",
            message="LEDGER_PRIVATE_KEY is required",
        )

    return Web3LedgerClient(
        rpc_url=cfg.rpc_url,
        private_key=cfg.private_key,
        tokens=TEMPO_TOKENS,
        timeout_seconds=cfg.timeout_seconds,
        confirm_timeout_seconds=cfg.confirm_timeout_seconds,
    )
