"""Process-wide service instances exposed as FastAPI dependencies.

Instances are built lazily from settings on first use so importing the app
does not open network connections. Tests replace them through
``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends

from tiny_faucet.adapters.ledger.base import AbstractLedgerClient
from tiny_faucet.adapters.ledger.factory import create_ledger_client
from tiny_faucet.adapters.quota_store.base import AbstractQuotaStore
from tiny_faucet.core.config import settings
from tiny_faucet.core.rate_limit import close_quota_store, get_quota_store, get_rate_limiter
from tiny_faucet.services.funding_service import FundingService
from tiny_faucet.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

__all__ = [
    "FundingDep",
    "LedgerDep",
    "LimiterDep",
    "QuotaStoreDep",
    "close_dependencies",
    "get_funding_service",
    "get_ledger_client",
    "get_quota_store",
    "get_rate_limiter",
]

_ledger: AbstractLedgerClient | None = None
_funding_service: FundingService | None = None


def get_ledger_client() -> AbstractLedgerClient:
    global _ledger

    if _ledger is None:
        _ledger = create_ledger_client(settings.ledger)
    return _ledger


def get_funding_service() -> FundingService:
    global _funding_service

    if _funding_service is None:
        _funding_service = FundingService(
            get_ledger_client(),
            replenish_grace_seconds=settings.ledger.replenish_grace_seconds,
        )
    return _funding_service


async def close_dependencies() -> None:
    """Close network resources held by the cached instances."""

    global _ledger, _funding_service

    if _ledger is not None:
        await _ledger.close()
        logger.info("ledger.closed")
    _ledger = None
    _funding_service = None
    await close_quota_store()


LedgerDep = Annotated[AbstractLedgerClient, Depends(get_ledger_client)]
LimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]
FundingDep = Annotated[FundingService, Depends(get_funding_service)]
QuotaStoreDep = Annotated[AbstractQuotaStore, Depends(get_quota_store)]
