"""Tempo ledger client built on web3.py.

Reads TIP-20 (ERC-20 compatible) balances, signs transfers locally with the
service wallet key and submits them over JSON-RPC. Replenishment uses the
testnet-only ``tempo_fundAddress`` RPC method, which mints faucet funds of
every supported token into the given address.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Awaitable, Mapping, TypeVar

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3RPCError

from tiny_faucet.adapters.ledger.base import AbstractLedgerClient
from tiny_faucet.core.errors import (
    AppError,
    InvalidRecipientError,
    LedgerUnavailableError,
    TransferRejectedError,
    ValidationAppError,
)
from tiny_faucet.utils.address import is_valid_address

logger = logging.getLogger(__name__)

T = TypeVar("T")

ERC20_ABI: list[dict[str, Any]] = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
]

FUND_ADDRESS_METHOD = "tempo_fundAddress"

# JSON-RPC error messages meaning the node refused this particular transaction.
_REJECTION_MARKERS = (
    "execution reverted",
    "nonce too low",
    "nonce too high",
    "insufficient funds",
    "intrinsic gas too low",
    "gas required exceeds allowance",
    "exceeds block gas limit",
    "transaction underpriced",
    "already known",
)


def is_transfer_rejection(exc: Web3RPCError) -> bool:
    """Return True when an RPC error refuses the transaction itself.

    Rate limits, internal errors and other provider faults return False.
    """
    message = str(exc).lower()
    return any(marker in message for marker in _REJECTION_MARKERS)


class Web3LedgerClient(AbstractLedgerClient):
    """Service wallet on a Tempo JSON-RPC endpoint.

    Outgoing transfers are serialized by an asyncio lock and use the
    ``pending`` nonce, so concurrent funding requests handled by one process
    never submit two transactions with the same nonce.
    """

    def __init__(
        self,
        *,
        rpc_url: str,
        private_key: str,
        tokens: Mapping[str, str],
        timeout_seconds: float = 30.0,
        confirm_timeout_seconds: float = 120.0,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            rpc_url: Tempo JSON-RPC endpoint.
            private_key: Hex private key of the service wallet.
            tokens: Token name to contract address mapping.
            timeout_seconds: Timeout for individual RPC calls.
            confirm_timeout_seconds: Timeout while waiting for a receipt.
            w3: Pre-built AsyncWeb3 instance (tests).

        Raises:
            ValidationAppError: If the private key cannot be parsed.
        """
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as exc:
            raise ValidationAppError(
                code="ledger_invalid_private_key",
                message="LEDGER_PRIVATE_KEY is not a valid private key",
            ) from exc

        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._tokens = {name: Web3.to_checksum_address(addr) for name, addr in tokens.items()}
        self._timeout = timeout_seconds
        self._confirm_timeout = confirm_timeout_seconds
        self._send_lock = asyncio.Lock()
        self._decimals: dict[str, int] = {}

        logger.info(
            "ledger.client_initialized",
            extra={"wallet": self._account.address, "tokens": sorted(self._tokens)},
        )

    @property
    def wallet_address(self) -> str:
        return self._account.address

    def _contract(self, token: str) -> Any:
        address = self._tokens.get(token)
        if address is None:
            raise ValidationAppError(
                code="unsupported_token",
                message=f"Unsupported token: '{token}'",
                details={"token": token},
            )
        return self._w3.eth.contract(address=address, abi=ERC20_ABI)

    async def _call(
        self,
        awaitable: Awaitable[T],
        *,
        operation: str,
        timeout: float | None = None,
        submits_transfer: bool = False,
    ) -> T:
        """Await a web3 call with a timeout, mapping failures to domain errors.

        Args:
            awaitable: Pending web3 coroutine.
            operation: Short operation name used in logs and error details.
            timeout: Override of the per-call timeout.
            submits_transfer: The call builds or sends a transfer. Reverts and
                execution/nonce/funds RPC errors then mean the ledger refused
                it; any other failure still means the ledger is unavailable.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout or self._timeout)
        except AppError:
            raise
        except ContractLogicError as exc:
            if submits_transfer:
                logger.warning("ledger.execution_reverted", extra={"operation": operation, "error": str(exc)})
                raise TransferRejectedError(
                    code="transfer_rejected",
                    message="The ledger rejected the transfer",
                    details={"reason": str(exc)},
                ) from exc
            logger.error("ledger.call_reverted", extra={"operation": operation, "error": str(exc)})
            raise LedgerUnavailableError(
                code="ledger_unavailable",
                message=f"Ledger call reverted during {operation}",
                details={"reason": str(exc)},
            ) from exc
        except Web3RPCError as exc:
            if submits_transfer and is_transfer_rejection(exc):
                logger.warning("ledger.rpc_rejected", extra={"operation": operation, "error": str(exc)})
                raise TransferRejectedError(
                    code="transfer_rejected",
                    message="The ledger rejected the transfer",
                    details={"reason": str(exc)},
                ) from exc
            logger.error("ledger.rpc_error", extra={"operation": operation, "error": str(exc)})
            raise LedgerUnavailableError(
                code="ledger_unavailable",
                message=f"Ledger RPC error during {operation}",
                details={"reason": str(exc)},
            ) from exc
        except (asyncio.TimeoutError, TimeExhausted) as exc:
            logger.error("ledger.timeout", extra={"operation": operation})
            raise LedgerUnavailableError(
                code="ledger_unavailable",
                message=f"Ledger did not respond in time during {operation}",
                details={"reason": "timeout"},
            ) from exc
        except Exception as exc:
            logger.error(
                "ledger.transport_error",
                extra={"operation": operation, "error_type": type(exc).__name__, "error": str(exc)},
            )
            raise LedgerUnavailableError(
                code="ledger_unavailable",
                message=f"Ledger request failed during {operation}",
                details={"reason": str(exc)},
            ) from exc

    async def _get_decimals(self, token: str) -> int:
        decimals = self._decimals.get(token)
        if decimals is None:
            contract = self._contract(token)
            decimals = int(await self._call(contract.functions.decimals().call(), operation="decimals"))
            self._decimals[token] = decimals
        return decimals

    async def get_balance(self, token: str) -> Decimal:
        contract = self._contract(token)
        decimals = await self._get_decimals(token)
        raw = await self._call(
            contract.functions.balanceOf(self._account.address).call(),
            operation="balance_of",
        )
        return Decimal(raw) / (Decimal(10) ** decimals)

    async def transfer(self, token: str, recipient: str, amount: int) -> str:
        if not is_valid_address(recipient):
            raise InvalidRecipientError(
                code="invalid_recipient",
                message="Recipient is not a valid account address",
                details={"recipient": recipient},
            )
        to_address = Web3.to_checksum_address(recipient)
        contract = self._contract(token)
        decimals = await self._get_decimals(token)
        amount_units = int(amount) * 10**decimals

        async with self._send_lock:
            nonce = await self._call(
                self._w3.eth.get_transaction_count(self._account.address, "pending"),
                operation="get_nonce",
            )
            tx = await self._call(
                contract.functions.transfer(to_address, amount_units).build_transaction(
                    {"from": self._account.address, "nonce": nonce}
                ),
                operation="build_transfer",
                submits_transfer=True,
            )
            signed = self._account.sign_transaction(tx)
            tx_hash = Web3.to_hex(
                await self._call(
                    self._w3.eth.send_raw_transaction(signed.raw_transaction),
                    operation="send_transfer",
                    submits_transfer=True,
                )
            )

        logger.info(
            "ledger.transfer_submitted",
            extra={"token": token, "recipient": to_address, "amount": amount, "tx_hash": tx_hash, "nonce": nonce},
        )

        receipt = await self._call(
            self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._confirm_timeout),
            operation="wait_for_receipt",
            timeout=self._confirm_timeout + self._timeout,
        )
        if receipt["status"] != 1:
            logger.warning("ledger.transfer_reverted", extra={"tx_hash": tx_hash})
            raise TransferRejectedError(
                code="transfer_rejected",
                message="Transfer was included but reverted",
                details={"tx_hash": tx_hash},
            )

        logger.info("ledger.transfer_confirmed", extra={"tx_hash": tx_hash, "block": receipt["blockNumber"]})
        return tx_hash

    async def replenish(self) -> list[str]:
        logger.info("ledger.replenish_requested", extra={"wallet": self._account.address})
        response = await self._call(
            self._w3.provider.make_request(FUND_ADDRESS_METHOD, [self._account.address]),
            operation="replenish",
        )
        if response.get("error"):
            raise LedgerUnavailableError(
                code="replenish_failed",
                message="Upstream faucet refused to fund the service wallet",
                details={"reason": str(response["error"])},
            )

        result = response.get("result")
        tx_hashes = [str(h) for h in result] if isinstance(result, list) else []
        logger.info("ledger.replenished", extra={"tx_hashes": tx_hashes})
        return tx_hashes

    async def get_chain_id(self) -> int:
        return int(await self._call(self._w3.eth.chain_id, operation="chain_id"))

    async def close(self) -> None:
        await self._w3.provider.disconnect()
