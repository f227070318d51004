"""
TrendingOrchestrator -- resolves keywords to trending topics.

Ties the cache (KeyStore + RetentionPolicy), the fetch-strategy selector,
the search client and the response-repair pipeline together.

Flow (per call)
---------------
validate -> cache lookup -> partition hits / misses
    -> (batch fetch | individual fetches) -> repair -> cache write
    -> results in input order

Per keyword: PENDING -> CACHE_CHECKED -> (CACHE_HIT | FETCHING)
-> (RESOLVED | FALLBACK).

Key design decisions
--------------------
- **Caller errors only**: validation failures raise ``CallerError``; every
  other problem degrades to a fallback result for the affected keyword.
- **Isolation**: each individual fetch has its own ``asyncio.wait_for``
  timeout; one slow keyword never fails the others.
- **Batch is all-or-nothing**: a rejected batch response re-runs every
  keyword on the individual path.
- **Fallbacks are never cached**: a transient failure must not be served
  from cache for hours.
- **Cancel-safe writes**: cache writes run under ``asyncio.shield`` and
  finish even if the caller goes away.
"""

import asyncio
import logging
from contextvars import Token
from dataclasses import replace
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

from trendlens.cache.key_store import Clock, KeyStore
from trendlens.cache.retention import RetentionPolicy
from trendlens.config import Settings
from trendlens.exceptions import InvalidKeywordError, SearchError
from trendlens.logging import ComponentLogger, EventLogger, LogComponent
from trendlens.models import (
    CacheInfo,
    CachedLookup,
    CacheRecord,
    KeywordRequest,
    TrendingResult,
    cache_key,
)
from trendlens.parsing import ResponseRepairPipeline, parse_batch_response
from trendlens.prompts import build_batch_prompt, build_keyword_prompt
from trendlens.strategy import FetchStrategySelector
from trendlens.tools.base import SearchClient
from trendlens.utils import generate_id, utc_now
from trendlens.validation import validate_keyword, validate_keyword_count

logger = logging.getLogger(__name__)

RequestLike = Union[str, KeywordRequest, Dict[str, Any]]


class KeywordState(Enum):
    """Lifecycle of one keyword within a single call."""

    PENDING = "pending"
    CACHE_CHECKED = "cache_checked"
    CACHE_HIT = "cache_hit"
    FETCHING = "fetching"
    RESOLVED = "resolved"
    FALLBACK = "fallback"


class TrendingOrchestrator:
    """Resolve keyword requests to ``TrendingResult`` values.

    All collaborators are injected; nothing is read from global state.

    Args:
        search_client: Anything implementing ``SearchClient``.
        key_store: Cache backend chosen at startup.
        retention_policy: TTL / validity rules.  Defaults to the configured
            default cache duration.
        settings: Limits, timeouts and model name.
        selector: Batch-vs-individual decision.
        repair_pipeline: Raw text -> topics.
        event_logger: Optional structured event sink.
        clock: Source of "now".  Tests inject a fake.
    """

    def __init__(
        self,
        search_client: SearchClient,
        key_store: KeyStore,
        retention_policy: Optional[RetentionPolicy] = None,
        settings: Optional[Settings] = None,
        selector: Optional[FetchStrategySelector] = None,
        repair_pipeline: Optional[ResponseRepairPipeline] = None,
        event_logger: Optional[EventLogger] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.search_client = search_client
        self.key_store = key_store
        self.retention_policy = retention_policy or RetentionPolicy(
            self.settings.default_ttl_seconds
        )
        self.selector = selector or FetchStrategySelector(self.settings.batch)
        self.repair_pipeline = repair_pipeline or ResponseRepairPipeline(
            search_url_base=self.settings.search.search_url_base
        )
        self.event_logger = event_logger
        self.clock: Clock = clock or utc_now
        self.log = ComponentLogger(LogComponent.ORCHESTRATOR, event_logger)
        self._pending_writes: Set["asyncio.Future[None]"] = set()

    # =========================================================================
    # PUBLIC OPERATIONS
    # =========================================================================

    async def resolve(self, requests: Sequence[RequestLike]) -> List[TrendingResult]:
        """Return one result per request, in input order.

        Raises:
            TooManyKeywordsError: More than ``max_keywords`` requests.
            InvalidKeywordError: Empty or over-long keyword.
            InvalidMaxResultsError: Malformed dict request.
        """
        normalized = self._normalize(requests)
        run_token = self._start_run()
        try:
            results, misses = await self._lookup(normalized)
            states = [KeywordState.CACHE_HIT if result else KeywordState.FETCHING for result in results]

            await self.log.info(
                "Cache partitioned",
                data={
                    "requested": len(normalized),
                    "hits": len(normalized) - len(misses),
                    "misses": len(misses),
                },
            )

            if misses:
                fetched = await self._fetch_and_store([normalized[index] for index in misses])
                for index, result in zip(misses, fetched):
                    results[index] = result
                    states[index] = KeywordState.FALLBACK if result.fallback else KeywordState.RESOLVED

            await self._log_outcome(states)
            return [result for result in results if result is not None]
        finally:
            self._end_run(run_token)

    async def resolve_cached_only(self, requests: Sequence[RequestLike]) -> CachedLookup:
        """Cache-only lookup for progressive loading: no search calls."""
        normalized = self._normalize(requests)
        results, misses = await self._lookup(normalized)
        hits = [result for result in results if result is not None]
        lookup = CachedLookup(hits=hits, misses=[normalized[index].keyword for index in misses])
        logger.info(
            "[CACHE] cached-only lookup: %d/%d hits", lookup.cache_hits, lookup.total_requested
        )
        return lookup

    async def refresh(self, requests: Sequence[RequestLike]) -> List[TrendingResult]:
        """Fetch every request regardless of cache state and overwrite the cache."""
        normalized = self._normalize(requests)
        run_token = self._start_run()
        try:
            await self.log.info("Forced refresh", data={"keywords": [r.keyword for r in normalized]})
            results = await self._fetch_and_store(normalized)
            await self._log_outcome(
                [KeywordState.FALLBACK if r.fallback else KeywordState.RESOLVED for r in results]
            )
            return results
        finally:
            self._end_run(run_token)

    def stats(self) -> Dict[str, object]:
        """Cache counters plus backend name."""
        return self.key_store.stats_snapshot()

    def reset_stats(self) -> None:
        self.key_store.stats.reset()
        logger.info("[CACHE] statistics reset")

    async def cache_info(self) -> CacheInfo:
        return await self.key_store.cache_info(self.settings.cache.key_prefix)

    async def invalidate(self, keyword: Optional[str] = None) -> None:
        """Drop one keyword's cache entry, or every entry when ``keyword`` is None."""
        if keyword is None:
            await self.key_store.clear(self.settings.cache.key_prefix)
            await self.log.info("Cache cleared")
            return
        key = self._key(validate_keyword(keyword))
        await self.key_store.delete(key)
        await self.log.info("Cache entry invalidated", data={"key": key})

    async def close(self) -> None:
        """Wait for in-flight cache writes, then release the backend."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)
        await self.key_store.close()

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _normalize(self, requests: Sequence[RequestLike]) -> List[KeywordRequest]:
        limits = self.settings.limits
        if isinstance(requests, (str, bytes, dict, KeywordRequest)) or not isinstance(
            requests, Sequence
        ):
            raise InvalidKeywordError("Keywords must be an array", code="VALIDATION_ERROR")
        if not requests:
            raise InvalidKeywordError("At least one keyword is required")
        validate_keyword_count(len(requests), limits.max_keywords)

        normalized = []
        for item in requests:
            if isinstance(item, KeywordRequest):
                keyword = validate_keyword(item.keyword)
                request = item if keyword == item.keyword else replace(item, keyword=keyword)
            elif isinstance(item, str):
                request = KeywordRequest(
                    keyword=validate_keyword(item),
                    max_results=limits.default_results_per_keyword,
                )
            elif isinstance(item, dict):
                request = KeywordRequest.from_dict(
                    item,
                    min_results=limits.min_results_per_keyword,
                    max_results=limits.max_results_per_keyword,
                    default_results=limits.default_results_per_keyword,
                )
            else:
                raise InvalidKeywordError("Keywords must be non-empty strings")
            normalized.append(
                request.clamped(limits.min_results_per_keyword, limits.max_results_per_keyword)
            )
        return normalized

    def _key(self, keyword: str) -> str:
        return cache_key(keyword, self.settings.cache.key_prefix)

    # =========================================================================
    # CACHE
    # =========================================================================

    async def _lookup(
        self, requests: Sequence[KeywordRequest]
    ) -> Tuple[List[Optional[TrendingResult]], List[int]]:
        """Partition requests into cache hits (by position) and miss indexes."""
        records = await self.key_store.get_multiple(self._key(r.keyword) for r in requests)
        now = self.clock()

        results: List[Optional[TrendingResult]] = []
        misses: List[int] = []
        for index, request in enumerate(requests):
            record = records.get(self._key(request.keyword))
            if record is not None and self.retention_policy.is_valid(
                record.result.last_updated, request.retention, now=now
            ):
                result = record.result
                if len(result.topics) > request.max_results:
                    result = replace(result, topics=result.topics[: request.max_results])
                results.append(replace(result, keyword=request.keyword).with_cached(True))
            else:
                results.append(None)
                misses.append(index)
        return results, misses

    async def _store(self, fetched: Dict[str, TrendingResult], ttl_by_key: Dict[str, int]) -> None:
        """Write non-fallback results; the write survives caller cancellation."""
        records = {
            key: CacheRecord(
                result=result.with_cached(False),
                expires_at=result.last_updated + timedelta(seconds=ttl_by_key[key]),
            )
            for key, result in fetched.items()
            if not result.fallback
        }
        if not records:
            return

        write = asyncio.ensure_future(self.key_store.set_multiple(records, ttl_by_key))
        self._pending_writes.add(write)
        write.add_done_callback(self._pending_writes.discard)
        await asyncio.shield(write)
        logger.debug("[CACHE] stored %d results", len(records))

    # =========================================================================
    # FETCHING
    # =========================================================================

    async def _fetch_and_store(self, requests: Sequence[KeywordRequest]) -> List[TrendingResult]:
        """Fetch ``requests`` (deduplicated by cache key), write, return in order.

        Duplicate keywords share one fetch with the largest ``max_results``
        and are cached with the longest requested retention.
        """
        unique: Dict[str, KeywordRequest] = {}
        ttl_by_key: Dict[str, int] = {}
        for request in requests:
            key = self._key(request.keyword)
            current = unique.get(key)
            if current is None or request.max_results > current.max_results:
                unique[key] = request
            ttl_by_key[key] = max(
                ttl_by_key.get(key, 0), self.retention_policy.ttl_seconds(request.retention)
            )

        fetched = await self._fetch(list(unique.values()))
        await self._store(fetched, ttl_by_key)

        results = []
        for request in requests:
            result = fetched[self._key(request.keyword)]
            results.append(
                replace(
                    result,
                    keyword=request.keyword,
                    topics=result.topics[: request.max_results],
                )
            )
        return results

    async def _fetch(self, requests: List[KeywordRequest]) -> Dict[str, TrendingResult]:
        if len(requests) > 1 and self.selector.should_batch(requests):
            batched = await self._fetch_batch(requests)
            if batched is not None:
                return batched
            await self.log.warning(
                "Batch rejected, falling back to individual fetches",
                data={"keywords": len(requests)},
            )

        results = await asyncio.gather(*(self._fetch_one(request) for request in requests))
        return {self._key(request.keyword): result for request, result in zip(requests, results)}

    async def _fetch_batch(self, requests: List[KeywordRequest]) -> Optional[Dict[str, TrendingResult]]:
        search = self.settings.search
        prompt = build_batch_prompt(requests)
        try:
            async with self.log.timed(f"Batch fetch for {len(requests)} keywords"):
                raw = await asyncio.wait_for(
                    self.search_client.fetch(prompt, search.model, _ms(search.batch_timeout_seconds)),
                    timeout=search.batch_timeout_seconds,
                )
        except (asyncio.TimeoutError, SearchError) as exc:
            logger.warning("[FETCH] batch call failed: %s", exc)
            return None
        except Exception as exc:
            await self.log.error(
                "Unexpected search client error in batch call",
                error=exc,
                data={"keywords": len(requests)},
            )
            return None

        parsed = parse_batch_response(
            raw, requests, search.search_url_base, key_prefix=self.settings.cache.key_prefix
        )
        if parsed is None:
            return None

        now = self.clock()
        return {
            self._key(request.keyword): TrendingResult(
                keyword=request.keyword,
                topics=parsed[self._key(request.keyword)][: request.max_results],
                last_updated=now,
            )
            for request in requests
        }

    async def _fetch_one(self, request: KeywordRequest) -> TrendingResult:
        """Fetch and repair one keyword.  Never raises for provider problems."""
        search = self.settings.search
        prompt = build_keyword_prompt(request.keyword, request.max_results)
        try:
            raw = await asyncio.wait_for(
                self.search_client.fetch(prompt, search.model, _ms(search.keyword_timeout_seconds)),
                timeout=search.keyword_timeout_seconds,
            )
        except asyncio.TimeoutError:
            await self.log.warning(
                "Search timed out",
                data={"keyword": request.keyword, "timeout_s": search.keyword_timeout_seconds},
            )
            return self._unavailable(request)
        except SearchError as exc:
            await self.log.warning(
                "Search failed", data={"keyword": request.keyword, "error": str(exc)}
            )
            return self._unavailable(request)
        except Exception as exc:
            await self.log.error("Unexpected search client error", error=exc, data={"keyword": request.keyword})
            return self._unavailable(request)

        topics = self.repair_pipeline.parse(raw, request.keyword, request.max_results)
        if not topics:
            return TrendingResult(
                keyword=request.keyword,
                topics=(self.repair_pipeline.fallback_topic(request.keyword),),
                last_updated=self.clock(),
                fallback=True,
            )
        return TrendingResult(keyword=request.keyword, topics=topics, last_updated=self.clock())

    def _unavailable(self, request: KeywordRequest) -> TrendingResult:
        return TrendingResult(
            keyword=request.keyword,
            topics=(self.repair_pipeline.unavailable_topic(request.keyword),),
            last_updated=self.clock(),
            fallback=True,
        )

    # =========================================================================
    # RUN CONTEXT
    # =========================================================================

    def _start_run(self) -> Optional[Token]:
        if self.event_logger is None:
            return None
        return self.event_logger.set_context(run_id=generate_id())

    def _end_run(self, token: Optional[Token]) -> None:
        if self.event_logger is not None and token is not None:
            self.event_logger.clear_context(token)

    async def _log_outcome(self, states: Sequence[KeywordState]) -> None:
        counts: Dict[str, int] = {}
        for state in states:
            counts[state.value] = counts.get(state.value, 0) + 1
        await self.log.info("Keywords resolved", data=counts)


def _ms(seconds: float) -> int:
    return int(seconds * 1000)
