"""In-process KeyStore backend with lazy expiry and an optional sweeper."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from trendlens.cache.key_store import Clock, KeyStore

logger = logging.getLogger(__name__)


class MemoryKeyStore(KeyStore):
    """Dict-backed cache for single-process deployments and tests.

    Expired entries are dropped lazily on read.  ``start()`` additionally
    launches a background sweep every ``sweep_interval_seconds`` so
    abandoned keys do not accumulate; correctness never depends on it.

    Args:
        sweep_interval_seconds: Period of the background sweep.
        clock: Source of "now" (shared with expiry checks in the base).
    """

    backend_name = "memory"

    def __init__(
        self,
        sweep_interval_seconds: float = 600,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(clock=clock)
        self.sweep_interval_seconds = sweep_interval_seconds
        self._entries: Dict[str, Tuple[str, datetime]] = {}
        self._sweeper: Optional["asyncio.Task[None]"] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            removed = self.sweep()
            if removed:
                logger.debug("[CACHE] memory sweep removed %d expired keys", removed)

    def sweep(self) -> int:
        """Drop every expired entry now; returns how many were removed."""
        now = self.clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    async def _get_raw(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at <= self.clock():
            self._entries.pop(key, None)
            return None
        return payload

    async def _set_raw(self, key: str, payload: str, ttl_seconds: int) -> None:
        self._entries[key] = (payload, self.clock() + timedelta(seconds=ttl_seconds))

    async def _delete_raw(self, key: str) -> None:
        self._entries.pop(key, None)

    async def _keys(self, prefix: str) -> List[str]:
        now = self.clock()
        return [
            key
            for key, (_, expires_at) in self._entries.items()
            if key.startswith(prefix) and expires_at > now
        ]

    async def _clear_raw(self, prefix: str) -> None:
        for key in [key for key in self._entries if key.startswith(prefix)]:
            del self._entries[key]

    async def _ttl(self, key: str) -> Optional[int]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        remaining = int((entry[1] - self.clock()).total_seconds())
        return remaining if remaining > 0 else None
