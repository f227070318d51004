"""Tests for trendlens.exceptions -- custom exception hierarchy.

Validates the hierarchy, attribute storage, error codes and message
formatting for every exception class in the module.
"""

import pytest

from trendlens import exceptions
from trendlens.exceptions import (
    CacheBackendError,
    CallerError,
    ConfigurationError,
    InvalidKeywordError,
    InvalidMaxResultsError,
    ProviderError,
    RetryExhaustedError,
    SearchError,
    SearchTimeoutError,
    TooManyKeywordsError,
    TrendLensError,
)


# =========================================================================
# Hierarchy
# =========================================================================


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "exc_cls",
        [
            CallerError,
            SearchError,
            CacheBackendError,
            ConfigurationError,
            RetryExhaustedError,
        ],
    )
    def test_direct_subclasses_of_base(self, exc_cls):
        assert issubclass(exc_cls, TrendLensError)

    @pytest.mark.parametrize(
        "exc_cls", [TooManyKeywordsError, InvalidKeywordError, InvalidMaxResultsError]
    )
    def test_caller_errors_are_value_errors(self, exc_cls):
        assert issubclass(exc_cls, CallerError)
        assert issubclass(exc_cls, ValueError)

    @pytest.mark.parametrize("exc_cls", [SearchTimeoutError, ProviderError])
    def test_search_errors(self, exc_cls):
        assert issubclass(exc_cls, SearchError)
        assert not issubclass(exc_cls, CallerError)

    def test_infrastructure_errors_are_not_caller_errors(self):
        assert not issubclass(CacheBackendError, ValueError)
        assert not issubclass(ConfigurationError, CallerError)

    def test_all_exports_every_class(self):
        for name in exceptions.__all__:
            assert issubclass(getattr(exceptions, name), TrendLensError)


# =========================================================================
# Error codes
# =========================================================================


class TestCallerErrorCodes:
    @pytest.mark.parametrize(
        "exc, code",
        [
            (CallerError("bad"), "VALIDATION_ERROR"),
            (InvalidKeywordError("bad"), "INVALID_KEYWORDS"),
            (InvalidMaxResultsError("bad"), "INVALID_MAX_RESULTS"),
            (TooManyKeywordsError(12, 10), "TOO_MANY_KEYWORDS"),
        ],
    )
    def test_default_codes(self, exc, code):
        assert exc.code == code

    def test_code_override_is_per_instance(self):
        overridden = InvalidKeywordError("too long", code="KEYWORD_TOO_LONG")
        assert overridden.code == "KEYWORD_TOO_LONG"
        assert InvalidKeywordError("empty").code == "INVALID_KEYWORDS"

    def test_too_many_keywords_message(self):
        err = TooManyKeywordsError(12, 10)
        assert (err.count, err.limit) == (12, 10)
        assert str(err) == "Maximum 10 keywords allowed, got 12"


# =========================================================================
# Attribute storage and messages
# =========================================================================


class TestSearchTimeoutError:
    def test_stores_timeout_and_target(self):
        err = SearchTimeoutError(2.5, target="batch search")
        assert err.timeout == 2.5
        assert err.target == "batch search"
        assert str(err) == "batch search timed out after 2.5 seconds"


class TestProviderError:
    def test_with_status(self):
        err = ProviderError("Responses API error", status_code=429)
        assert err.status_code == 429
        assert str(err) == "Responses API error (status 429)"

    def test_without_status(self):
        err = ProviderError("connection reset")
        assert err.status_code is None
        assert str(err) == "connection reset"


class TestRetryExhaustedError:
    def test_stores_details(self):
        cause = ConnectionError("refused")
        err = RetryExhaustedError("redis ping", 3, cause)

        assert err.operation == "redis ping"
        assert err.attempts == 3
        assert err.last_error is cause
        assert str(err) == "redis ping failed after 3 attempts. Last error: refused"
