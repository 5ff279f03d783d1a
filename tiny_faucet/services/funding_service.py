"""Funding orchestration: balance check, bounded replenishment, transfer.

This service turns an admitted funding request into exactly one on-chain
transfer from the service wallet. When the wallet is short it asks the
upstream faucet for funds once, waits a short grace period for settlement and
re-checks; it never loops. Ledger faults propagate unchanged so the HTTP
layer can map them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Awaitable, Callable

from tiny_faucet.adapters.ledger.base import AbstractLedgerClient
from tiny_faucet.core.errors import InsufficientFundsError, InvalidRecipientError
from tiny_faucet.utils.address import is_valid_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferResult:
    """A confirmed transfer from the service wallet."""

    tx_hash: str
    amount: int
    token: str
    recipient: str


class FundingService:
    """Sends faucet funds to recipients that passed rate limiting.

    Attributes:
        ledger: Service wallet client.
        replenish_grace_seconds: Wait between replenishment and re-check.
    """

    def __init__(
        self,
        ledger: AbstractLedgerClient,
        *,
        replenish_grace_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the funding service.

        Args:
            ledger: Configured ledger client.
            replenish_grace_seconds: Settlement wait after a replenishment.
            sleep: Awaitable sleep function (injectable for tests).
        """
        self.ledger = ledger
        self.replenish_grace_seconds = replenish_grace_seconds
        self._sleep = sleep

    async def _ensure_balance(self, token: str, amount: int) -> Decimal:
        """Make sure the service wallet holds at least amount of token.

        Replenishes at most once.

        Raises:
            InsufficientFundsError: If the balance is still short afterwards.
        """
        required = Decimal(amount)
        balance = await self.ledger.get_balance(token)
        if balance >= required:
            return balance

        logger.warning(
            "funding.replenish_requested",
            extra={"token": token, "required": str(required), "available": str(balance)},
        )
        await self.ledger.replenish()
        await self._sleep(self.replenish_grace_seconds)

        balance = await self.ledger.get_balance(token)
        if balance < required:
            logger.error(
                "funding.insufficient_after_replenish",
                extra={"token": token, "required": str(required), "available": str(balance)},
            )
            raise InsufficientFundsError(
                code="insufficient_funds",
                message="Faucet balance is too low even after replenishment. Try again later.",
                details={"token": token, "required": str(required), "available": str(balance)},
            )

        logger.info("funding.replenished", extra={"token": token, "available": str(balance)})
        return balance

    async def fund(self, address: str, token: str, amount: int) -> TransferResult:
        """Transfer amount of token from the service wallet to address.

        Args:
            address: Recipient account address.
            token: Supported token name (e.g. "pathUSD").
            amount: Whole token units from the allowed tiers.

        Returns:
            TransferResult with the acknowledged transaction hash.

        Raises:
            InvalidRecipientError: If address is malformed.
            InsufficientFundsError: If the wallet cannot cover the amount.
            LedgerUnavailableError: On RPC transport faults or timeouts.
            TransferRejectedError: If the ledger refuses the transfer.
        """
        if not is_valid_address(address):
            raise InvalidRecipientError(
                code="invalid_recipient",
                message="Recipient is not a valid account address",
                details={"recipient": str(address)},
            )

        await self._ensure_balance(token, amount)

        tx_hash = await self.ledger.transfer(token, address, amount)
        logger.info(
            "funding.completed",
            extra={"recipient": address, "token": token, "amount": amount, "tx_hash": tx_hash},
        )
        return TransferResult(tx_hash=tx_hash, amount=amount, token=token, recipient=address)
