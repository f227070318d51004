"""
Cache engine: retention policy, the KeyStore interface and its backends.

- RetentionPolicy: ``{value, unit}`` -> clamped TTL, validity checks
- KeyStore / CacheStats: backend-agnostic contract and counters
- MemoryKeyStore: in-process dict with lazy expiry + optional sweeper
- RedisKeyStore: ``redis.asyncio`` backend
- create_key_store / connect_key_store: startup-time backend selection
"""

from trendlens.cache.retention import RetentionPolicy
from trendlens.cache.key_store import CacheStats, KeyStore
from trendlens.cache.memory import MemoryKeyStore
from trendlens.cache.redis_store import RedisKeyStore
from trendlens.cache.factory import connect_key_store, create_key_store

__all__ = [
    "RetentionPolicy",
    "CacheStats",
    "KeyStore",
    "MemoryKeyStore",
    "RedisKeyStore",
    "create_key_store",
    "connect_key_store",
]
