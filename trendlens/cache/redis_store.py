"""Networked KeyStore backend on ``redis.asyncio``."""

import logging
from typing import Any, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from trendlens.cache.key_store import Clock, KeyStore
from trendlens.exceptions import CacheBackendError

logger = logging.getLogger(__name__)


class RedisKeyStore(KeyStore):
    """Redis-backed cache shared across processes.

    Entries are written with ``SETEX`` so Redis enforces the TTL; the base
    class still checks each record's ``expires_at`` on read.  Client errors
    surface as ``CacheBackendError`` and are absorbed by the base class.

    Args:
        client: A ``redis.asyncio.Redis`` (or compatible) client created
            with ``decode_responses=True``.
        clock: Source of "now" for record expiry checks.
    """

    backend_name = "redis"

    def __init__(self, client: Any, clock: Optional[Clock] = None) -> None:
        super().__init__(clock=clock)
        self.client = client

    @classmethod
    def from_url(cls, url: str, clock: Optional[Clock] = None) -> "RedisKeyStore":
        """Create a store with a lazily-connecting client for ``url``."""
        client = aioredis.from_url(url, decode_responses=True)
        return cls(client, clock=clock)

    async def ping(self) -> bool:
        """Round-trip to the server; raises ``RedisError`` on connection failure."""
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()

    async def _call(self, operation: str, *args: Any) -> Any:
        try:
            return await getattr(self.client, operation)(*args)
        except RedisError as exc:
            raise CacheBackendError(f"redis {operation.upper()} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    async def _get_raw(self, key: str) -> Optional[str]:
        return await self._call("get", key)

    async def _set_raw(self, key: str, payload: str, ttl_seconds: int) -> None:
        await self._call("setex", key, ttl_seconds, payload)

    async def _delete_raw(self, key: str) -> None:
        await self._call("delete", key)

    async def _keys(self, prefix: str) -> List[str]:
        try:
            return [key async for key in self.client.scan_iter(match=f"{prefix}*")]
        except RedisError as exc:
            raise CacheBackendError(f"redis SCAN failed: {exc}") from exc

    async def _clear_raw(self, prefix: str) -> None:
        keys = await self._keys(prefix)
        if keys:
            await self._call("delete", *keys)
            logger.info("[CACHE] cleared %d redis keys under %s", len(keys), prefix)

    async def _ttl(self, key: str) -> Optional[int]:
        ttl = await self._call("ttl", key)
        return ttl if ttl and ttl > 0 else None
