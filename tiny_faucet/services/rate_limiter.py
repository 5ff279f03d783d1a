"""Per-address funding quota on top of a shared quota store.

Policy:
- Fixed-origin window: the reset time is set by the first request of a window
  and carried forward unchanged on every later request; it never slides.
- The request that would exceed the cap is rejected before consuming a slot.
- No in-process lock: same-key correctness relies on the store's atomic
  replace-with-TTL. Two concurrent first requests may both write count=1
  (last writer wins); that imprecision is accepted.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from tiny_faucet.adapters.quota_store.base import AbstractQuotaStore, QuotaRecord
from tiny_faucet.utils.address import normalize_address

logger = logging.getLogger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def ms_to_iso(epoch_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC timestamp."""
    return (
        datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a check-and-consume call.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Requests left in the window after this one (0 when denied).
        reset_at_ms: UNIX epoch milliseconds when the window resets.
        retry_after_seconds: Seconds until the window resets, when denied.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after_seconds: int | None = None

    @property
    def reset_at(self) -> str:
        return ms_to_iso(self.reset_at_ms)

    def to_headers(self) -> dict[str, str]:
        """Standard rate limit headers for this decision."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at_ms // 1000),
        }
        if self.retry_after_seconds is not None:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


@dataclass(frozen=True)
class QuotaSnapshot:
    """Read-only view of an address's quota."""

    count: int
    limit: int
    remaining: int
    reset_at_ms: int | None

    @property
    def reset_at(self) -> str | None:
        return ms_to_iso(self.reset_at_ms) if self.reset_at_ms is not None else None


class RateLimiter:
    """Fixed-window request quota keyed by recipient address."""

    def __init__(
        self,
        store: AbstractQuotaStore,
        *,
        max_requests: int,
        window_ms: int,
        key_prefix: str = "ratelimit:",
        clock: Callable[[], int] = _epoch_ms,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            store: Shared quota store.
            max_requests: Maximum allowed requests per window.
            window_ms: Window length in milliseconds.
            key_prefix: Namespace prepended to every store key.
            clock: Time source returning UNIX time in milliseconds.

        Raises:
            ValueError: If max_requests or window_ms are invalid.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        self._store = store
        self._max_requests = max_requests
        self._window_ms = window_ms
        self._key_prefix = key_prefix
        self._clock = clock

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def _key(self, address: str) -> str:
        if not address or not address.strip():
            raise ValueError("address must be a non-empty string")
        return f"{self._key_prefix}{normalize_address(address)}"

    async def _load_live(self, key: str, now: int) -> QuotaRecord | None:
        # A record past its reset point is logically absent even if the store
        # has not dropped it yet.
        record = await self._store.get(key)
        if record is None or record.reset_at_ms <= now:
            return None
        return record

    async def check_and_consume(self, address: str) -> QuotaDecision:
        """Consume one request slot for address if its quota allows it.

        Args:
            address: Recipient address (any casing).

        Returns:
            QuotaDecision describing whether the request was allowed.

        Raises:
            ValueError: If address is empty.
            QuotaStoreUnavailableError: If the store cannot be reached.
        """
        key = self._key(address)
        now = self._clock()
        record = await self._load_live(key, now)

        if record is None:
            reset_at_ms = now + self._window_ms
            await self._store.set_with_expiry(
                key, QuotaRecord(count=1, reset_at_ms=reset_at_ms), self._window_ms
            )
            return QuotaDecision(
                allowed=True,
                limit=self._max_requests,
                remaining=self._max_requests - 1,
                reset_at_ms=reset_at_ms,
            )

        if record.count >= self._max_requests:
            retry_after = max(0, math.ceil((record.reset_at_ms - now) / 1000))
            logger.debug(
                "rate_limit.denied",
                extra={"key": key, "count": record.count, "limit": self._max_requests},
            )
            return QuotaDecision(
                allowed=False,
                limit=self._max_requests,
                remaining=0,
                reset_at_ms=record.reset_at_ms,
                retry_after_seconds=retry_after,
            )

        new_count = record.count + 1
        await self._store.set_with_expiry(
            key,
            QuotaRecord(count=new_count, reset_at_ms=record.reset_at_ms),
            record.reset_at_ms - now,
        )
        return QuotaDecision(
            allowed=True,
            limit=self._max_requests,
            remaining=self._max_requests - new_count,
            reset_at_ms=record.reset_at_ms,
        )

    async def inspect(self, address: str) -> QuotaSnapshot:
        """Report address's quota usage without consuming a slot."""
        key = self._key(address)
        record = await self._load_live(key, self._clock())

        if record is None:
            return QuotaSnapshot(
                count=0,
                limit=self._max_requests,
                remaining=self._max_requests,
                reset_at_ms=None,
            )

        return QuotaSnapshot(
            count=record.count,
            limit=self._max_requests,
            remaining=max(0, self._max_requests - record.count),
            reset_at_ms=record.reset_at_ms,
        )
