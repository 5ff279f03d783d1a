"""Quota store adapters - shared TTL counters keyed by address."""

from tiny_faucet.adapters.quota_store.base import AbstractQuotaStore, QuotaRecord
from tiny_faucet.adapters.quota_store.factory import create_quota_store
from tiny_faucet.adapters.quota_store.in_memory import InMemoryQuotaStore
from tiny_faucet.adapters.quota_store.redis_store import RedisQuotaStore

__all__ = [
    "AbstractQuotaStore",
    "InMemoryQuotaStore",
    "QuotaRecord",
    "RedisQuotaStore",
    "create_quota_store",
]
