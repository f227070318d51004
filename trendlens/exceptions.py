"""
Custom exception classes for trendlens.

Only caller errors are allowed to cross the orchestrator boundary.  Search,
parse and cache failures are absorbed inside the core and degrade into
fallback results, so those exception types are mostly raised and caught
internally.

Hierarchy:
    Exception
    +-- TrendLensError (base for all package errors)
        +-- CallerError (ValueError)
        |   +-- TooManyKeywordsError
        |   +-- InvalidKeywordError
        |   +-- InvalidMaxResultsError
        +-- SearchError
        |   +-- SearchTimeoutError
        |   +-- ProviderError
        +-- CacheBackendError
        +-- ConfigurationError
        +-- RetryExhaustedError
"""

from typing import Optional


# =============================================================================
# BASE EXCEPTION
# =============================================================================


class TrendLensError(Exception):
    """Base exception for all trendlens errors."""

    pass


# =============================================================================
# CALLER ERRORS
# =============================================================================


class CallerError(TrendLensError, ValueError):
    """Raised when the caller supplied an invalid request.

    Attributes:
        code: Stable machine-readable error code for the HTTP layer.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        if code is not None:
            self.code = code
        super().__init__(message)


class TooManyKeywordsError(CallerError):
    """Raised when a call carries more keywords than allowed.

    Attributes:
        count: Number of keywords requested.
        limit: Configured maximum.
    """

    code = "TOO_MANY_KEYWORDS"

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(f"Maximum {limit} keywords allowed, got {count}")


class InvalidKeywordError(CallerError):
    """Raised when a keyword is empty, not a string, or too long."""

    code = "INVALID_KEYWORDS"


class InvalidMaxResultsError(CallerError):
    """Raised when ``max_results`` is not an integer in the allowed range."""

    code = "INVALID_MAX_RESULTS"


# =============================================================================
# SEARCH ERRORS
# =============================================================================


class SearchError(TrendLensError):
    """Raised when the web-search endpoint could not produce a response."""

    pass


class SearchTimeoutError(SearchError):
    """Raised when a search call exceeds its timeout.

    Attributes:
        timeout: Timeout duration in seconds.
    """

    def __init__(self, timeout: float, target: str = "search"):
        self.timeout = timeout
        self.target = target
        super().__init__(f"{target} timed out after {timeout:g} seconds")


class ProviderError(SearchError):
    """Raised when the LLM provider returns an error or unusable payload.

    Attributes:
        status_code: HTTP status code, when one was received.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        if status_code is not None:
            message = f"{message} (status {status_code})"
        super().__init__(message)


# =============================================================================
# INFRASTRUCTURE ERRORS
# =============================================================================


class CacheBackendError(TrendLensError):
    """Raised by cache backends; always swallowed at the KeyStore boundary."""

    pass


class ConfigurationError(TrendLensError):
    """Raised when system configuration is invalid."""

    pass


class RetryExhaustedError(TrendLensError):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        operation: Name of the operation that was retried.
        attempts: Total number of attempts made.
        last_error: The last exception raised before giving up.
    """

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts. "
            f"Last error: {last_error}"
        )


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    "TrendLensError",
    # Caller
    "CallerError",
    "TooManyKeywordsError",
    "InvalidKeywordError",
    "InvalidMaxResultsError",
    # Search
    "SearchError",
    "SearchTimeoutError",
    "ProviderError",
    # Infrastructure
    "CacheBackendError",
    "ConfigurationError",
    "RetryExhaustedError",
]
