"""
Shared data types for trendlens.

Hierarchy of types
------------------
- **Enums**: ``RetentionUnit``
- **Request models**: ``Retention``, ``KeywordRequest``
- **Result models**: ``Topic``, ``TrendingResult``, ``CachedLookup``
- **Cache models**: ``CacheRecord``, ``CacheKeyInfo``, ``CacheInfo``
- **Helpers**: ``cache_key()``, ``keyword_from_cache_key()``, ``is_valid_topic()``

Every model is immutable.  A refresh produces a new ``TrendingResult``; no
code path edits one in place.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from trendlens.exceptions import InvalidMaxResultsError
from trendlens.utils import ensure_utc, parse_timestamp
from trendlens.validation import validate_keyword, validate_max_results


# =============================================================================
# CONSTANTS
# =============================================================================

CACHE_KEY_PREFIX = "trending:"

# Strictly-greater-than thresholds; shorter strings are parse noise.
MIN_TITLE_LENGTH = 5
MIN_SUMMARY_LENGTH = 10

_WHITESPACE_RE = re.compile(r"\s+")
_RETENTION_RE = re.compile(r"^\s*(\d+)\s*([a-zA-Z]+)?\s*$")


def cache_key(keyword: str, prefix: str = CACHE_KEY_PREFIX) -> str:
    """Normalize a keyword into its namespaced cache key.

    ``"Climate  Tech"`` -> ``"trending:climate_tech"``.
    """
    return f"{prefix}{_WHITESPACE_RE.sub('_', keyword.strip().lower())}"


def keyword_from_cache_key(key: str, prefix: str = CACHE_KEY_PREFIX) -> str:
    """Best-effort inverse of :func:`cache_key` for operator listings."""
    if key.startswith(prefix):
        key = key[len(prefix):]
    return key.replace("_", " ")


def is_valid_topic(title: Any, summary: Any) -> bool:
    """Return ``True`` when both fields are strings of plausible length."""
    return (
        isinstance(title, str)
        and isinstance(summary, str)
        and len(title.strip()) > MIN_TITLE_LENGTH
        and len(summary.strip()) > MIN_SUMMARY_LENGTH
    )


# =============================================================================
# REQUEST MODELS
# =============================================================================


class RetentionUnit(Enum):
    """Unit of a user-supplied cache retention window."""

    HOUR = "hour"
    DAY = "day"

    @classmethod
    def parse(cls, value: Any) -> "RetentionUnit":
        """Accept enum members or case-insensitive names/values."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        aliases = {"h": "hour", "hours": "hour", "d": "day", "days": "day"}
        return cls(aliases.get(text, text))


@dataclass(frozen=True)
class Retention:
    """User-configurable cache validity window for one keyword."""

    value: int
    unit: RetentionUnit = RetentionUnit.HOUR

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Retention":
        """Build from ``{"value": 6, "unit": "hour"}``.

        Raises:
            ValueError: If ``value`` is not numeric or ``unit`` is unknown.
        """
        return cls(value=int(data["value"]), unit=RetentionUnit.parse(data.get("unit", "hour")))

    @classmethod
    def parse(cls, text: str) -> "Retention":
        """Parse shorthand such as ``"6h"``, ``"2d"`` or ``"12 hours"``.

        A bare number is read as hours.

        Raises:
            ValueError: If the text is not ``<int>[unit]``.
        """
        match = _RETENTION_RE.match(text or "")
        if not match:
            raise ValueError(f"Invalid retention '{text}' (expected e.g. 6h or 2d)")
        return cls(value=int(match.group(1)), unit=RetentionUnit.parse(match.group(2) or "hour"))

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "unit": self.unit.value}


@dataclass(frozen=True)
class KeywordRequest:
    """One keyword the caller wants trending topics for."""

    keyword: str
    max_results: int = 3
    retention: Optional[Retention] = None

    def clamped(self, minimum: int, maximum: int) -> "KeywordRequest":
        """Return a copy with ``max_results`` clamped into ``[minimum, maximum]``."""
        bounded = max(minimum, min(maximum, self.max_results))
        if bounded == self.max_results:
            return self
        return replace(self, max_results=bounded)

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        min_results: int = 1,
        max_results: int = 10,
        default_results: int = 3,
    ) -> "KeywordRequest":
        """Build a request from a JSON-style payload with strict validation.

        Accepts ``maxResults`` or ``max_results`` and ``retention`` or
        ``cacheRetention``.

        Raises:
            InvalidKeywordError: Empty, non-string, or over-long keyword.
            InvalidMaxResultsError: ``maxResults`` outside the allowed range
                or a malformed retention block.
        """
        keyword = validate_keyword(data.get("keyword"))
        count = data.get("maxResults", data.get("max_results", default_results))
        validate_max_results(count, min_results, max_results)

        retention_data = data.get("retention", data.get("cacheRetention"))
        retention: Optional[Retention] = None
        if retention_data is not None:
            try:
                retention = Retention.from_dict(retention_data)
            except (KeyError, TypeError, ValueError) as exc:
                raise InvalidMaxResultsError(
                    f"Invalid retention for keyword '{keyword}': {retention_data!r}",
                    code="INVALID_RETENTION",
                ) from exc

        return cls(keyword=keyword, max_results=count, retention=retention)


# =============================================================================
# RESULT MODELS
# =============================================================================


@dataclass(frozen=True)
class Topic:
    """A single trending topic extracted from a search response."""

    title: str
    summary: str
    search_url: str
    source_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "summary": self.summary,
            "search_url": self.search_url,
        }
        if self.source_url:
            data["source_url"] = self.source_url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Topic":
        return cls(
            title=data["title"],
            summary=data["summary"],
            search_url=data.get("search_url", ""),
            source_url=data.get("source_url"),
        )


@dataclass(frozen=True)
class TrendingResult:
    """Trending topics for one keyword, as returned to the caller.

    ``fallback`` is set when the topics are synthetic (fetch failed or the
    response could not be parsed); such results are never cached.
    """

    keyword: str
    topics: Tuple[Topic, ...]
    last_updated: datetime
    cached: bool = False
    fallback: bool = False

    def __post_init__(self) -> None:
        # Accept any sequence at construction but always store a tuple.
        if not isinstance(self.topics, tuple):
            object.__setattr__(self, "topics", tuple(self.topics))
        object.__setattr__(self, "last_updated", ensure_utc(self.last_updated))

    def with_cached(self, cached: bool = True) -> "TrendingResult":
        """Return a copy with the ``cached`` flag set."""
        return replace(self, cached=cached)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "topics": [topic.to_dict() for topic in self.topics],
            "last_updated": self.last_updated.isoformat(),
            "cached": self.cached,
            "fallback": self.fallback,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrendingResult":
        return cls(
            keyword=data["keyword"],
            topics=tuple(Topic.from_dict(item) for item in data["topics"]),
            last_updated=parse_timestamp(data["last_updated"]),
            cached=bool(data.get("cached", False)),
            fallback=bool(data.get("fallback", False)),
        )


@dataclass(frozen=True)
class CachedLookup:
    """Outcome of a cache-only lookup for progressive-loading callers."""

    hits: List[TrendingResult]
    misses: List[str]

    @property
    def total_requested(self) -> int:
        return len(self.hits) + len(self.misses)

    @property
    def cache_hits(self) -> int:
        return len(self.hits)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": [result.to_dict() for result in self.hits],
            "misses": list(self.misses),
            "total_requested": self.total_requested,
            "cache_hits": self.cache_hits,
        }


# =============================================================================
# CACHE MODELS
# =============================================================================


@dataclass(frozen=True)
class CacheRecord:
    """Serialized form of a ``TrendingResult`` plus its expiry instant."""

    result: TrendingResult
    expires_at: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "expires_at", ensure_utc(self.expires_at))

    def is_expired(self, now: datetime) -> bool:
        return ensure_utc(now) >= self.expires_at

    def to_json(self) -> str:
        return json.dumps(
            {"result": self.result.to_dict(), "expires_at": self.expires_at.isoformat()},
            ensure_ascii=False,
        )

    @classmethod
    def from_json(cls, payload: str) -> "CacheRecord":
        """Decode a stored payload.

        Raises:
            ValueError: If the payload is not a well-formed record (this
                includes ``json.JSONDecodeError``).
        """
        try:
            data = json.loads(payload)
            return cls(
                result=TrendingResult.from_dict(data["result"]),
                expires_at=parse_timestamp(data["expires_at"]),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"Malformed cache record: {exc}") from exc


@dataclass(frozen=True)
class CacheKeyInfo:
    """Operator view of a single cached key."""

    keyword: str
    key: str
    expires_in_seconds: Optional[int]

    @property
    def expired(self) -> bool:
        return self.expires_in_seconds is None or self.expires_in_seconds <= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "key": self.key,
            "expires_in_seconds": self.expires_in_seconds,
        }


@dataclass(frozen=True)
class CacheInfo:
    """Per-key TTL listing for a cache backend."""

    backend: str
    keys: List[CacheKeyInfo] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def total_keys(self) -> int:
        return len(self.keys)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "backend": self.backend,
            "total_keys": self.total_keys,
            "keys": [info.to_dict() for info in self.keys],
        }
        if self.error:
            data["error"] = self.error
        return data
