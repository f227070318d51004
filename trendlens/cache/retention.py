"""
Retention policy: user-facing ``{value, unit}`` windows -> TTL seconds.

Retention is a UX preference, not a correctness contract, so out-of-range
values are clamped rather than rejected.
"""

from datetime import datetime
from typing import Optional

from trendlens.models import Retention, RetentionUnit
from trendlens.utils import ensure_utc, utc_now

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

MAX_RETENTION_HOURS = 168
MAX_RETENTION_DAYS = 7


class RetentionPolicy:
    """Map retention requests to cache TTLs and check cached-value validity.

    Args:
        default_ttl_seconds: TTL applied when a request carries no
            retention (default two hours).
    """

    def __init__(self, default_ttl_seconds: int = 2 * SECONDS_PER_HOUR) -> None:
        self.default_ttl_seconds = default_ttl_seconds

    def ttl_seconds(self, retention: Optional[Retention] = None) -> int:
        """Return the clamped TTL in seconds for ``retention``."""
        if retention is None:
            return self.default_ttl_seconds

        if retention.unit is RetentionUnit.DAY:
            days = max(1, min(MAX_RETENTION_DAYS, int(retention.value)))
            return days * SECONDS_PER_DAY

        hours = max(1, min(MAX_RETENTION_HOURS, int(retention.value)))
        return hours * SECONDS_PER_HOUR

    def is_valid(
        self,
        last_updated: datetime,
        retention: Optional[Retention] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """``True`` iff ``now - last_updated`` is strictly below the TTL."""
        current = ensure_utc(now) if now is not None else utc_now()
        age = (current - ensure_utc(last_updated)).total_seconds()
        return age < self.ttl_seconds(retention)
