"""Quota store interfaces.

The rate limiter depends on this abstraction (not a concrete backend) so the
same policy runs against Redis in production and an in-process map in tests
or single-instance deployments.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class QuotaRecord:
    """Requests consumed by one address in its current window.

    Attributes:
        count: Requests consumed so far in the window.
        reset_at_ms: UNIX epoch milliseconds when the window expires.
    """

    count: int
    reset_at_ms: int

    def to_json(self) -> str:
        return json.dumps({"count": self.count, "resetAt": self.reset_at_ms})

    @classmethod
    def from_json(cls, raw: str | bytes) -> "QuotaRecord":
        """Parse the stored JSON payload.

        Raises:
            ValueError: If the payload is not a valid quota record.
        """
        try:
            data = json.loads(raw)
            count = int(data["count"])
            reset_at_ms = int(data["resetAt"])
        except (TypeError, KeyError, json.JSONDecodeError) as exc:
            raise ValueError(f"malformed quota record: {exc}") from exc
        if count < 0:
            raise ValueError("malformed quota record: negative count")
        return cls(count=count, reset_at_ms=reset_at_ms)


class AbstractQuotaStore(ABC):
    """Shared key-value store with per-key atomic replace and TTL.

    Implementations must make single-key operations atomic with respect to
    concurrent callers, and an expired key must read exactly like a missing
    one. Communication faults raise QuotaStoreUnavailableError.
    """

    @abstractmethod
    async def get(self, key: str) -> QuotaRecord | None:
        """Return the live record for key, or None when absent/expired."""
        raise NotImplementedError

    @abstractmethod
    async def set_with_expiry(self, key: str, record: QuotaRecord, ttl_ms: int) -> None:
        """Create or replace the record for key, expiring after ttl_ms.

        Args:
            key: Store key.
            record: Record to store.
            ttl_ms: Time-to-live in milliseconds (>= 1).
        """
        raise NotImplementedError

    async def ping(self) -> bool:
        """Return True when the backend answers.

        Raises:
            QuotaStoreUnavailableError: If the backend cannot be reached.
        """
        return True

    async def close(self) -> None:
        """Release backend resources (connections, pools)."""
        return None
