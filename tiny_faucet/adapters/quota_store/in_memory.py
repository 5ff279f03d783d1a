"""In-memory quota store.

Notes:
- Per-process only: running multiple workers multiplies the effective quota.
- Thread-safe: uses a lock around shared state.
- Expiry is checked on access; expired entries are also swept on writes.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from tiny_faucet.adapters.quota_store.base import AbstractQuotaStore, QuotaRecord

logger = logging.getLogger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _Entry:
    record: QuotaRecord
    expires_at_ms: int


class InMemoryQuotaStore(AbstractQuotaStore):
    """Quota store backed by a lock-guarded dictionary.

    Important:
        Suitable for a single process only. Deployments with several workers
        or instances must share quota state through Redis.
    """

    def __init__(self, *, clock: Callable[[], int] = _epoch_ms) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning UNIX time in milliseconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for entry in self._entries.values() if entry.expires_at_ms > now)

    async def get(self, key: str) -> QuotaRecord | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at_ms <= self._clock():
                del self._entries[key]
                return None
            return entry.record

    async def set_with_expiry(self, key: str, record: QuotaRecord, ttl_ms: int) -> None:
        if ttl_ms < 1:
            raise ValueError("ttl_ms must be >= 1")

        with self._lock:
            now = self._clock()
            self._evict_expired_locked(now)
            self._entries[key] = _Entry(record=record, expires_at_ms=now + ttl_ms)

    async def close(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_expired_locked(self, now: int) -> None:
        expired = [k for k, entry in self._entries.items() if entry.expires_at_ms <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("quota_store.evicted", extra={"evicted": len(expired)})
