"""
Tests for trendlens.models -- the shared data types.

Covers:
    - cache_key / keyword_from_cache_key normalization
    - is_valid_topic thresholds
    - Retention parsing and KeywordRequest validation
    - Result and cache model serialization
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from trendlens.exceptions import InvalidKeywordError, InvalidMaxResultsError
from trendlens.models import (
    CachedLookup,
    CacheInfo,
    CacheKeyInfo,
    CacheRecord,
    KeywordRequest,
    Retention,
    RetentionUnit,
    Topic,
    TrendingResult,
    cache_key,
    is_valid_topic,
    keyword_from_cache_key,
)

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def sample_result(**overrides):
    data = dict(
        keyword="Climate Tech",
        topics=[
            Topic(
                title="Carbon capture plant opens",
                summary="The largest direct air capture plant started operating.",
                search_url="https://www.google.com/search?q=Carbon%20capture%20plant%20opens",
                source_url="https://example.com/dac",
            )
        ],
        last_updated=NOW,
    )
    data.update(overrides)
    return TrendingResult(**data)


# ===========================================================================
# Helpers
# ===========================================================================


class TestCacheKey:
    @pytest.mark.parametrize(
        "keyword", ["Climate Tech", "climate tech", "  CLIMATE   tech ", "climate\ttech"]
    )
    def test_normalizes_case_and_whitespace(self, keyword):
        assert cache_key(keyword) == "trending:climate_tech"

    def test_custom_prefix(self):
        assert cache_key("AI", prefix="dev:trending:") == "dev:trending:ai"

    def test_inverse_for_listings(self):
        assert keyword_from_cache_key("trending:climate_tech") == "climate tech"
        assert keyword_from_cache_key("other:key") == "other:key"


class TestIsValidTopic:
    def test_thresholds_are_strict(self):
        assert not is_valid_topic("12345", "long enough summary")
        assert is_valid_topic("123456", "12345678901")
        assert not is_valid_topic("123456", "1234567890")

    def test_whitespace_does_not_count(self):
        assert not is_valid_topic("   abc   ", "a perfectly fine summary")

    def test_non_strings(self):
        assert not is_valid_topic(None, "a perfectly fine summary")
        assert not is_valid_topic("Valid title", ["list"])


# ===========================================================================
# Request models
# ===========================================================================


class TestRetention:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("6h", Retention(6, RetentionUnit.HOUR)),
            ("2d", Retention(2, RetentionUnit.DAY)),
            ("12 hours", Retention(12, RetentionUnit.HOUR)),
            ("3 Days", Retention(3, RetentionUnit.DAY)),
            ("4", Retention(4, RetentionUnit.HOUR)),
        ],
    )
    def test_parse(self, text, expected):
        assert Retention.parse(text) == expected

    @pytest.mark.parametrize("text", ["", "h", "6 weeks", "-2d", "1.5h"])
    def test_parse_rejects(self, text):
        with pytest.raises(ValueError):
            Retention.parse(text)

    def test_from_dict_and_back(self):
        retention = Retention.from_dict({"value": "6", "unit": "Hours"})
        assert retention == Retention(6, RetentionUnit.HOUR)
        assert retention.to_dict() == {"value": 6, "unit": "hour"}

    def test_from_dict_defaults_to_hours(self):
        assert Retention.from_dict({"value": 1}).unit is RetentionUnit.HOUR


class TestKeywordRequest:
    def test_defaults(self):
        request = KeywordRequest("robotics")
        assert request.max_results == 3
        assert request.retention is None

    def test_clamped(self):
        assert KeywordRequest("a", 25).clamped(1, 10).max_results == 10
        assert KeywordRequest("a", 0).clamped(1, 10).max_results == 1
        request = KeywordRequest("a", 5)
        assert request.clamped(1, 10) is request

    def test_from_dict_accepts_both_spellings(self):
        camel = KeywordRequest.from_dict(
            {"keyword": " AI ", "maxResults": 5, "cacheRetention": {"value": 2, "unit": "day"}}
        )
        snake = KeywordRequest.from_dict(
            {"keyword": "AI", "max_results": 5, "retention": {"value": 2, "unit": "day"}}
        )
        assert camel == snake == KeywordRequest("AI", 5, Retention(2, RetentionUnit.DAY))

    def test_from_dict_default_count(self):
        assert KeywordRequest.from_dict({"keyword": "AI"}, default_results=4).max_results == 4

    def test_from_dict_rejects_bad_keyword(self):
        with pytest.raises(InvalidKeywordError):
            KeywordRequest.from_dict({"keyword": "   "})

    @pytest.mark.parametrize("count", [0, 11, "5"])
    def test_from_dict_rejects_bad_count(self, count):
        with pytest.raises(InvalidMaxResultsError):
            KeywordRequest.from_dict({"keyword": "AI", "maxResults": count})

    def test_from_dict_rejects_bad_retention(self):
        with pytest.raises(InvalidMaxResultsError) as exc_info:
            KeywordRequest.from_dict({"keyword": "AI", "retention": {"value": 2, "unit": "week"}})
        assert exc_info.value.code == "INVALID_RETENTION"


# ===========================================================================
# Result models
# ===========================================================================


class TestTrendingResult:
    def test_topics_are_stored_as_tuple(self):
        assert isinstance(sample_result().topics, tuple)

    def test_is_immutable(self):
        with pytest.raises(FrozenInstanceError):
            sample_result().keyword = "other"

    def test_naive_timestamp_becomes_utc(self):
        result = sample_result(last_updated=datetime(2025, 6, 15, 12, 0, 0))
        assert result.last_updated == NOW

    def test_with_cached_returns_copy(self):
        fresh = sample_result()
        cached = fresh.with_cached()
        assert cached.cached and not fresh.cached
        assert cached.topics == fresh.topics

    def test_to_dict(self):
        data = sample_result().to_dict()
        assert data["keyword"] == "Climate Tech"
        assert data["last_updated"] == "2025-06-15T12:00:00+00:00"
        assert data["topics"][0]["source_url"] == "https://example.com/dac"
        assert data["cached"] is False and data["fallback"] is False

    def test_topic_without_source_url_omits_it(self):
        topic = Topic(title="t" * 6, summary="s" * 11, search_url="u")
        assert "source_url" not in topic.to_dict()


class TestCachedLookup:
    def test_counts(self):
        lookup = CachedLookup(hits=[sample_result(cached=True)], misses=["robotics", "ai"])

        data = lookup.to_dict()

        assert data["total_requested"] == 3
        assert data["cache_hits"] == 1
        assert data["misses"] == ["robotics", "ai"]


# ===========================================================================
# Cache models
# ===========================================================================


class TestCacheRecord:
    def test_json_round_trip(self):
        record = CacheRecord(result=sample_result(), expires_at=NOW + timedelta(hours=2))
        assert CacheRecord.from_json(record.to_json()) == record

    def test_expiry_boundary(self):
        record = CacheRecord(result=sample_result(), expires_at=NOW + timedelta(hours=2))
        assert not record.is_expired(NOW + timedelta(hours=2) - timedelta(seconds=1))
        assert record.is_expired(NOW + timedelta(hours=2))

    @pytest.mark.parametrize(
        "payload",
        ["not json", "[]", '{"result": {}}', '{"result": {"keyword": "x"}, "expires_at": "soon"}'],
    )
    def test_malformed_payload_raises_value_error(self, payload):
        with pytest.raises(ValueError):
            CacheRecord.from_json(payload)


class TestCacheInfo:
    def test_expired_flag(self):
        assert CacheKeyInfo("ai", "trending:ai", None).expired
        assert CacheKeyInfo("ai", "trending:ai", 0).expired
        assert not CacheKeyInfo("ai", "trending:ai", 30).expired

    def test_to_dict(self):
        info = CacheInfo(backend="memory", keys=[CacheKeyInfo("ai", "trending:ai", 30)])
        assert info.to_dict() == {
            "backend": "memory",
            "total_keys": 1,
            "keys": [{"keyword": "ai", "key": "trending:ai", "expires_in_seconds": 30}],
        }
