"""Rate limiting wiring for the HTTP layer.

This module owns the process-wide quota store and rate limiter and exposes
the admission step used by the funding route.

Rate limiting strategy:
- Fixed window per recipient address (lowercased), origin at first request.
- Denials raise RateLimitExceededError, rendered as HTTP 429.
"""

from __future__ import annotations

import logging

from tiny_faucet.adapters.quota_store.base import AbstractQuotaStore
from tiny_faucet.adapters.quota_store.factory import create_quota_store
from tiny_faucet.core.config import settings
from tiny_faucet.core.errors import RateLimitExceededError
from tiny_faucet.services.rate_limiter import QuotaDecision, RateLimiter

logger = logging.getLogger(__name__)


_store: AbstractQuotaStore | None = None
_limiter: RateLimiter | None = None
_limiter_config: tuple[int, int, str] | None = None


def get_quota_store() -> AbstractQuotaStore:
    """Return the process-wide quota store, creating it on first use."""

    global _store

    if _store is None:
        _store = create_quota_store(settings.quota_store)
        logger.info("quota_store.created", extra={"backend": settings.quota_store.backend})
    return _store


def get_rate_limiter() -> RateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module. If configuration changes (primarily in
    tests), the limiter is rebuilt on top of the same store.

    Returns:
        RateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = (
        settings.rate_limit.max_requests,
        settings.rate_limit.window_ms,
        settings.quota_store.key_prefix,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = RateLimiter(
            get_quota_store(),
            max_requests=settings.rate_limit.max_requests,
            window_ms=settings.rate_limit.window_ms,
            key_prefix=settings.quota_store.key_prefix,
        )
        _limiter_config = config

    return _limiter


async def close_quota_store() -> None:
    """Close and forget the process-wide store and limiter."""

    global _store, _limiter, _limiter_config

    if _store is not None:
        await _store.close()
    _store = None
    _limiter = None
    _limiter_config = None


async def enforce_quota(limiter: RateLimiter, address: str) -> QuotaDecision:
    """Consume one funding slot for address or reject the request.

    Args:
        limiter: Rate limiter to consult.
        address: Recipient address from the validated request body.

    Returns:
        QuotaDecision for the admitted request.

    Raises:
        RateLimitExceededError: When the address has no slots left.
        QuotaStoreUnavailableError: When the store cannot be reached.
    """

    decision = await limiter.check_and_consume(address)
    if decision.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "address": address.lower(),
                "limit": decision.limit,
                "remaining": decision.remaining,
                "reset_at": decision.reset_at,
            },
        )
        return decision

    retry_after = decision.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "address": address.lower(),
            "limit": decision.limit,
            "remaining": decision.remaining,
            "reset_at": decision.reset_at,
            "retry_after_s": retry_after,
        },
    )

    raise RateLimitExceededError(
        limit=decision.limit,
        reset_at=decision.reset_at,
        retry_after=retry_after,
        headers=decision.to_headers() if settings.rate_limit.include_headers else None,
    )
