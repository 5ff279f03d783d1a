"""Factory for quota store instances."""

from tiny_faucet.adapters.quota_store.base import AbstractQuotaStore
from tiny_faucet.adapters.quota_store.in_memory import InMemoryQuotaStore
from tiny_faucet.adapters.quota_store.redis_store import RedisQuotaStore
from tiny_faucet.core.config import QuotaStoreSettings, settings
from tiny_faucet.core.errors import ValidationAppError


def create_quota_store(store_settings: QuotaStoreSettings | None = None) -> AbstractQuotaStore:
    """Instantiate the configured quota store backend.

    Args:
        store_settings: Optional settings; defaults to the global settings.

    Returns:
        AbstractQuotaStore: Redis or in-memory store.

    Raises:
        ValidationAppError: If the backend name is not supported.
    """
    cfg = store_settings or settings.quota_store
    backend = cfg.backend.lower()

    if backend == "redis":
        return RedisQuotaStore.from_settings(
            url=cfg.redis_url,
            host=cfg.redis_host,
            port=cfg.redis_port,
            password=cfg.redis_password,
            socket_timeout_seconds=cfg.socket_timeout_seconds,
        )

    if backend == "memory":
        return InMemoryQuotaStore()

    raise ValidationAppError(
        code="quota_store_unknown_backend",
        message=f"Unknown quota store backend: '{backend}'. Supported backends: redis, memory",
    )
