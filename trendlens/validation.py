"""
Caller-input validation.

These checks guard the orchestrator boundary.  Violations are caller errors:
they raise immediately and are never retried.
"""

from typing import Any

from trendlens.exceptions import (
    InvalidKeywordError,
    InvalidMaxResultsError,
    TooManyKeywordsError,
)

MAX_KEYWORD_LENGTH = 100


def validate_keyword(keyword: Any, max_length: int = MAX_KEYWORD_LENGTH) -> str:
    """Validate a single keyword and return it trimmed.

    Raises:
        InvalidKeywordError: If the keyword is not a non-empty string or is
            longer than ``max_length`` characters after trimming.
    """
    if not isinstance(keyword, str) or not keyword.strip():
        raise InvalidKeywordError("Keywords must be non-empty strings")

    trimmed = keyword.strip()
    if len(trimmed) > max_length:
        raise InvalidKeywordError(
            f"Keywords must be {max_length} characters or less",
            code="KEYWORD_TOO_LONG",
        )
    return trimmed


def validate_keyword_count(count: int, max_keywords: int) -> None:
    """Raise ``TooManyKeywordsError`` when ``count`` exceeds the limit."""
    if count > max_keywords:
        raise TooManyKeywordsError(count, max_keywords)


def validate_max_results(value: Any, minimum: int, maximum: int) -> int:
    """Strictly validate a requested topic count.

    The orchestrator itself clamps; this strict form is for request payloads.

    Raises:
        InvalidMaxResultsError: If ``value`` is not an int in range.
    """
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise InvalidMaxResultsError(f"Max results must be at least {minimum}")
    if value > maximum:
        raise InvalidMaxResultsError(f"Max results cannot exceed {maximum}")
    return value
