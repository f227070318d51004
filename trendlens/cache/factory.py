"""Startup-time KeyStore selection.

The backend is chosen once, here, from configuration.  Nothing downstream
branches on the backend type.
"""

import logging
from typing import Optional

from redis.exceptions import RedisError

from trendlens.cache.key_store import Clock, KeyStore
from trendlens.cache.memory import MemoryKeyStore
from trendlens.cache.redis_store import RedisKeyStore
from trendlens.config import CacheConfig
from trendlens.exceptions import ConfigurationError, RetryExhaustedError
from trendlens.utils import with_retry

logger = logging.getLogger(__name__)


def create_key_store(config: CacheConfig, clock: Optional[Clock] = None) -> KeyStore:
    """Build the configured backend without touching the network.

    Raises:
        ConfigurationError: For an unknown backend name.
    """
    if config.backend == "memory":
        return MemoryKeyStore(sweep_interval_seconds=config.sweep_interval_seconds, clock=clock)
    if config.backend == "redis":
        return RedisKeyStore.from_url(config.redis_url, clock=clock)
    raise ConfigurationError(f"Unknown cache backend '{config.backend}'")


async def connect_key_store(
    config: CacheConfig,
    clock: Optional[Clock] = None,
    ping_attempts: int = 3,
    ping_delay: float = 0.5,
) -> KeyStore:
    """Build and verify the configured backend.

    A Redis server that stays unreachable after ``ping_attempts`` tries is
    replaced by the in-process store, so the service still starts (with a
    per-process cache) instead of failing.  The memory store's sweeper is
    started before returning.
    """
    store = create_key_store(config, clock=clock)

    if isinstance(store, RedisKeyStore):

        @with_retry(
            max_attempts=ping_attempts,
            base_delay=ping_delay,
            retryable_exceptions=(RedisError, OSError),
            operation_name="redis ping",
        )
        async def _ping() -> bool:
            return await store.ping()

        try:
            await _ping()
            logger.info("[CACHE] connected to redis at %s", config.redis_url)
            return store
        except RetryExhaustedError as exc:
            logger.warning(
                "[CACHE] redis unavailable (%s), falling back to in-process cache",
                exc.last_error,
            )
            await store.close()
            store = MemoryKeyStore(
                sweep_interval_seconds=config.sweep_interval_seconds, clock=clock
            )

    if isinstance(store, MemoryKeyStore):
        store.start()
    return store
