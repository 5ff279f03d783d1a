"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before anything imports the settings module, so
no real .env file, Redis server or RPC endpoint is needed.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LEDGER_PRIVATE_KEY", "0x" + "11" * 32)
os.environ.setdefault("LEDGER_RPC_URL", "http://127.0.0.1:8545")
os.environ.setdefault("QUOTA_STORE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "3")
os.environ.setdefault("RATE_LIMIT_WINDOW_MS", "86400000")
os.environ.setdefault("LEDGER_REPLENISH_GRACE_SECONDS", "0")

from decimal import Decimal

import pytest

from tiny_faucet.adapters.ledger.base import AbstractLedgerClient

SERVICE_WALLET = "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"
RECIPIENT = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


class FakeClock:
    """Deterministic millisecond clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FakeLedgerClient(AbstractLedgerClient):
    """In-memory ledger double that records every call."""

    def __init__(
        self,
        balances: dict[str, Decimal] | None = None,
        *,
        replenished_balances: dict[str, Decimal] | None = None,
        chain_id: int = 42431,
    ) -> None:
        self.balances = dict(balances or {})
        self.replenished_balances = replenished_balances
        self.chain_id = chain_id
        self.balance_error: Exception | None = None
        self.transfer_error: Exception | None = None
        self.replenish_error: Exception | None = None
        self.transfers: list[tuple[str, str, int]] = []
        self.replenish_calls = 0
        self.balance_calls = 0
        self.closed = False

    @property
    def wallet_address(self) -> str:
        return SERVICE_WALLET

    async def get_balance(self, token: str) -> Decimal:
        self.balance_calls += 1
        if self.balance_error:
            raise self.balance_error
        return self.balances.get(token, Decimal(0))

    async def transfer(self, token: str, recipient: str, amount: int) -> str:
        if self.transfer_error:
            raise self.transfer_error
        self.transfers.append((token, recipient, amount))
        self.balances[token] = self.balances.get(token, Decimal(0)) - amount
        return "0x" + f"{len(self.transfers):064x}"

    async def replenish(self) -> list[str]:
        self.replenish_calls += 1
        if self.replenish_error:
            raise self.replenish_error
        if self.replenished_balances is not None:
            self.balances.update(self.replenished_balances)
        return ["0x" + "aa" * 32]

    async def get_chain_id(self) -> int:
        if self.balance_error:
            raise self.balance_error
        return self.chain_id

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_ledger() -> FakeLedgerClient:
    return FakeLedgerClient({"pathUSD": Decimal(100_000), "AlphaUSD": Decimal(100_000)})


@pytest.fixture
def ledger_factory() -> type[FakeLedgerClient]:
    return FakeLedgerClient


@pytest.fixture
def recipient() -> str:
    return RECIPIENT
