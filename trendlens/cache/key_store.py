"""
KeyStore: the cache abstraction the orchestrator talks to.

The public methods (``get``, ``set``, ``get_multiple`` ...) live here and
carry the whole contract: record (de)serialization, lazy expiry, hit/miss/
error accounting and error swallowing.  Backends only implement the small
set of raw string operations (``_get_raw``, ``_set_raw`` ...), so the
orchestrator sees an identical interface whichever backend was chosen at
startup.

Cache failures never fail a request: every backend exception is logged,
counted and turned into a miss (reads) or a no-op (writes).
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from trendlens.models import (
    CACHE_KEY_PREFIX,
    CacheInfo,
    CacheKeyInfo,
    CacheRecord,
    keyword_from_cache_key,
)
from trendlens.utils import utc_now

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class CacheStats:
    """Process-lifetime cache counters.

    Increments are lock-guarded so concurrent readers/writers never lose an
    update, whether they run on the event loop or in worker threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._errors = 0

    def record_hit(self) -> None:
        with self._lock:
            self._hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def record_error(self) -> None:
        with self._lock:
            self._errors += 1

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def errors(self) -> int:
        return self._errors

    def snapshot(self) -> Dict[str, float]:
        """Return ``{hits, misses, errors, hit_rate}``; hit rate in percent."""
        with self._lock:
            hits, misses, errors = self._hits, self._misses, self._errors
        lookups = hits + misses
        hit_rate = round(hits / lookups * 100, 2) if lookups else 0.0
        return {"hits": hits, "misses": misses, "errors": errors, "hit_rate": hit_rate}

    def reset(self) -> None:
        """Zero all counters (operator action only)."""
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._errors = 0


class KeyStore(ABC):
    """Base class for cache backends.

    Args:
        clock: Source of "now" for expiry checks.  Tests inject a fake.
    """

    #: Short backend name reported in stats and cache info.
    backend_name: str = "abstract"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock: Clock = clock or utc_now
        self.stats = CacheStats()

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def _get_raw(self, key: str) -> Optional[str]:
        """Return the stored payload or ``None``."""

    @abstractmethod
    async def _set_raw(self, key: str, payload: str, ttl_seconds: int) -> None:
        """Store ``payload`` for ``ttl_seconds``."""

    @abstractmethod
    async def _delete_raw(self, key: str) -> None:
        """Remove ``key`` if present."""

    @abstractmethod
    async def _keys(self, prefix: str) -> List[str]:
        """List stored keys starting with ``prefix``."""

    @abstractmethod
    async def _ttl(self, key: str) -> Optional[int]:
        """Remaining lifetime in seconds, ``None`` if unknown/expired."""

    async def _clear_raw(self, prefix: str) -> None:
        keys = await self._keys(prefix)
        for key in keys:
            await self._delete_raw(key)

    async def close(self) -> None:
        """Release backend resources."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[CacheRecord]:
        """Return the live record for ``key``, or ``None``.

        Expired and undecodable payloads count as misses.  Backend errors
        count as errors and are reported as ``None``.
        """
        try:
            payload = await self._get_raw(key)
        except Exception as exc:
            self.stats.record_error()
            logger.error("[CACHE] get failed for %s on %s: %s", key, self.backend_name, exc)
            return None

        if payload is None:
            self.stats.record_miss()
            return None

        try:
            record = CacheRecord.from_json(payload)
        except ValueError as exc:
            self.stats.record_miss()
            logger.warning("[CACHE] discarding undecodable record for %s: %s", key, exc)
            return None

        if record.is_expired(self.clock()):
            self.stats.record_miss()
            return None

        self.stats.record_hit()
        return record

    async def get_multiple(self, keys: Iterable[str]) -> Dict[str, CacheRecord]:
        """Concurrent ``get`` over ``keys``; absent keys are left out."""
        unique = list(dict.fromkeys(keys))
        records = await asyncio.gather(*(self.get(key) for key in unique))
        return {key: record for key, record in zip(unique, records) if record is not None}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set(self, key: str, record: CacheRecord, ttl_seconds: int) -> None:
        """Store ``record`` under ``key``; failures are logged, never raised."""
        try:
            await self._set_raw(key, record.to_json(), max(1, int(ttl_seconds)))
        except Exception as exc:
            self.stats.record_error()
            logger.error("[CACHE] set failed for %s on %s: %s", key, self.backend_name, exc)

    async def set_multiple(
        self,
        records: Mapping[str, CacheRecord],
        ttl_by_key: Mapping[str, int],
        default_ttl_seconds: Optional[int] = None,
    ) -> None:
        """Concurrent ``set``; one failing key never blocks the others."""
        writes = []
        for key, record in records.items():
            ttl = ttl_by_key.get(key, default_ttl_seconds)
            if ttl is None:
                logger.warning("[CACHE] no TTL for %s, skipping write", key)
                continue
            writes.append(self.set(key, record, ttl))
        await asyncio.gather(*writes)

    async def delete(self, key: str) -> None:
        try:
            await self._delete_raw(key)
        except Exception as exc:
            self.stats.record_error()
            logger.error("[CACHE] delete failed for %s: %s", key, exc)

    async def clear(self, prefix: str = CACHE_KEY_PREFIX) -> None:
        """Remove every key under ``prefix``."""
        try:
            await self._clear_raw(prefix)
        except Exception as exc:
            self.stats.record_error()
            logger.error("[CACHE] clear failed for prefix %s: %s", prefix, exc)

    # ------------------------------------------------------------------
    # Operator views
    # ------------------------------------------------------------------

    async def cache_info(self, prefix: str = CACHE_KEY_PREFIX) -> CacheInfo:
        """List cached keys with their remaining lifetime."""
        try:
            keys = sorted(await self._keys(prefix))
            entries = []
            for key in keys:
                ttl = await self._ttl(key)
                entries.append(
                    CacheKeyInfo(
                        keyword=keyword_from_cache_key(key, prefix),
                        key=key,
                        expires_in_seconds=ttl,
                    )
                )
        except Exception as exc:
            logger.error("[CACHE] cache_info failed on %s: %s", self.backend_name, exc)
            return CacheInfo(
                backend=self.backend_name,
                error="Failed to retrieve cache information",
            )
        return CacheInfo(backend=self.backend_name, keys=entries)

    def stats_snapshot(self) -> Dict[str, object]:
        snapshot: Dict[str, object] = dict(self.stats.snapshot())
        snapshot["backend"] = self.backend_name
        return snapshot
