from abc import ABC, abstractmethod
from decimal import Decimal


class AbstractLedgerClient(ABC):
	"""Interface for clients that move tokens out of the service wallet.

	Implementations hold the service signing key, serialize outgoing transfers
	(nonce management is theirs), and raise LedgerUnavailableError for transport
	faults and TransferRejectedError when the ledger refuses a transfer.
	"""

	@property
	@abstractmethod
	def wallet_address(self) -> str:
		"""Checksummed address of the service wallet."""
		...

	@abstractmethod
	async def get_balance(self, token: str) -> Decimal:
		"""Return the service wallet balance of token, in whole token units."""
		...

	@abstractmethod
	async def transfer(self, token: str, recipient: str, amount: int) -> str:
		"""Send amount whole units of token to recipient.

		Blocks until the ledger has acknowledged the transfer with a receipt.

		Returns:
			str: Transaction hash (0x-prefixed hex).
		"""
		...

	@abstractmethod
	async def replenish(self) -> list[str]:
		"""Ask the upstream issuing faucet to top up the service wallet.

		Returns:
			list[str]: Transaction hashes of the funding transfers, if reported.
		"""
		...

	@abstractmethod
	async def get_chain_id(self) -> int:
		...

	async def close(self) -> None:
		return None
