"""
Shared utility functions used throughout trendlens.

Provides:
    - utc_now(): Timezone-aware UTC datetime
    - ensure_utc(dt): Convert any datetime to timezone-aware UTC
    - parse_timestamp(value): ISO-8601 string or datetime -> aware UTC datetime
    - generate_id(): UUID4 string generator (log correlation ids)
    - build_search_url(text, base): Web search link for a topic
    - @with_retry: Decorator with exponential backoff for transient failures
"""

from datetime import datetime, timezone
import uuid
import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar, Union
from urllib.parse import quote

from trendlens.exceptions import RetryExhaustedError

T = TypeVar("T")

DEFAULT_SEARCH_URL_BASE = "https://www.google.com/search?q="
# Characters encodeURIComponent leaves unescaped.
_URI_COMPONENT_SAFE = "!~*'()"


# ===========================================================================
# TIMEZONE UTILITIES
# ===========================================================================


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Every timestamp stored in a cache record goes through this (or an
    injected clock with the same signature) so expiry arithmetic never mixes
    naive and aware values.

    Returns:
        Timezone-aware datetime in UTC.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime is timezone-aware in UTC.

    Args:
        dt: Datetime to convert (naive or aware).

    Returns:
        Timezone-aware datetime in UTC.
    """
    if dt.tzinfo is None:
        # Assume naive datetime is UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-8601 string (or pass through a datetime) as aware UTC.

    Raises:
        ValueError: If the string is not ISO-8601.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def generate_id() -> str:
    """Generate a UUID4 string (used as a per-call correlation id)."""
    return str(uuid.uuid4())


# ===========================================================================
# SEARCH LINKS
# ===========================================================================


def build_search_url(text: str, base: str = DEFAULT_SEARCH_URL_BASE) -> str:
    """Build a generic web-search link for ``text``.

    The query is percent-encoded the same way a browser's
    ``encodeURIComponent`` would do it (spaces become ``%20``).
    """
    return base + quote(text.strip(), safe=_URI_COMPONENT_SAFE)


# ===========================================================================
# RETRY DECORATOR WITH EXPONENTIAL BACKOFF
# Used for startup-time operations (backend health checks).  Search calls
# are never retried: the only retry inside an orchestration call is the
# batch -> individual fallback.
# ===========================================================================


def backoff_delay(base_delay: float, attempt: int) -> float:
    """Delay before retrying after failed ``attempt`` (1-based)."""
    return base_delay * (2 ** (attempt - 1))


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    operation_name: Optional[str] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Retry an async callable with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default ``3``).
        base_delay: Delay in seconds before the first retry; each further
            retry doubles it.
        retryable_exceptions: Exception types that trigger a retry.  Anything
            else propagates immediately.
        operation_name: Name used in log messages; defaults to the wrapped
            function's ``__name__``.

    Raises:
        RetryExhaustedError: When every attempt failed with a retryable error.

    Usage::

        @with_retry(max_attempts=3, base_delay=0.5,
                    retryable_exceptions=(RedisError, OSError))
        async def ping() -> bool:
            return await store.ping()
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"with_retry requires an async function, got {func!r}")
        op_name = operation_name or func.__name__

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            last_error: Optional[Exception] = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_error = e
                    if attempt == max_attempts:
                        break
                    delay = backoff_delay(base_delay, attempt)
                    logging.warning(
                        "[RETRY] %s attempt %d/%d failed: %s. Retrying in %.1fs...",
                        op_name,
                        attempt,
                        max_attempts,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)

            logging.error(
                "[RETRY EXHAUSTED] %s failed after %d attempts: %s",
                op_name,
                max_attempts,
                last_error,
            )
            raise RetryExhaustedError(op_name, max_attempts, last_error)  # type: ignore[arg-type]

        return wrapper

    return decorator
