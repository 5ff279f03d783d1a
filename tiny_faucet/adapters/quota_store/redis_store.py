"""Redis-backed quota store.

Each record is one string key holding ``{"count": n, "resetAt": ms}`` written
with ``SET key value PX ttl`` so replacement and expiry happen in a single
atomic command. Redis drops the key when the TTL elapses.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from tiny_faucet.adapters.quota_store.base import AbstractQuotaStore, QuotaRecord
from tiny_faucet.core.errors import QuotaStoreUnavailableError

logger = logging.getLogger(__name__)


class RedisQuotaStore(AbstractQuotaStore):
    """Quota store on a shared Redis instance."""

    def __init__(self, client: redis.Redis) -> None:
        """Wrap an existing asyncio Redis client.

        Args:
            client: ``redis.asyncio.Redis`` instance (decode_responses=True).
        """
        self._client = client

    @classmethod
    def from_settings(
        cls,
        *,
        url: str | None,
        host: str,
        port: int,
        password: str | None,
        socket_timeout_seconds: float,
    ) -> "RedisQuotaStore":
        """Build a store with its own connection pool.

        ``url`` wins over host/port/password when provided.
        """
        common = {
            "encoding": "utf-8",
            "decode_responses": True,
            "socket_connect_timeout": socket_timeout_seconds,
            "socket_timeout": socket_timeout_seconds,
            "retry_on_timeout": True,
            "health_check_interval": 30,
        }
        if url:
            client = redis.from_url(url, **common)
        else:
            client = redis.Redis(host=host, port=port, password=password, **common)
        return cls(client)

    async def get(self, key: str) -> QuotaRecord | None:
        try:
            raw = await self._client.get(key)
        except RedisError as exc:
            logger.error("quota_store.read_failed", extra={"key": key, "error": str(exc)})
            raise QuotaStoreUnavailableError(
                code="quota_store_unavailable",
                message="Quota store read failed",
                details={"backend": "redis", "reason": str(exc)},
            ) from exc

        if raw is None:
            return None

        try:
            return QuotaRecord.from_json(raw)
        except ValueError as exc:
            logger.error("quota_store.corrupt_record", extra={"key": key, "error": str(exc)})
            raise QuotaStoreUnavailableError(
                code="quota_store_unavailable",
                message="Quota store returned a malformed record",
                details={"backend": "redis", "reason": str(exc)},
            ) from exc

    async def set_with_expiry(self, key: str, record: QuotaRecord, ttl_ms: int) -> None:
        if ttl_ms < 1:
            raise ValueError("ttl_ms must be >= 1")

        try:
            await self._client.set(key, record.to_json(), px=ttl_ms)
        except RedisError as exc:
            logger.error("quota_store.write_failed", extra={"key": key, "error": str(exc)})
            raise QuotaStoreUnavailableError(
                code="quota_store_unavailable",
                message="Quota store write failed",
                details={"backend": "redis", "reason": str(exc)},
            ) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            raise QuotaStoreUnavailableError(
                code="quota_store_unavailable",
                message="Quota store is not reachable",
                details={"backend": "redis", "reason": str(exc)},
            ) from exc

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("quota_store.closed", extra={"backend": "redis"})
