"""Tests for RetentionPolicy (retention window -> TTL, validity checks)."""

from datetime import timedelta

import pytest

from trendlens.cache import RetentionPolicy
from trendlens.models import Retention, RetentionUnit

HOUR = 3600
DAY = 86400


@pytest.fixture
def policy():
    return RetentionPolicy()


class TestTtlSeconds:
    def test_default_is_two_hours(self, policy):
        assert policy.ttl_seconds() == 2 * HOUR

    def test_custom_default(self):
        assert RetentionPolicy(default_ttl_seconds=600).ttl_seconds(None) == 600

    @pytest.mark.parametrize(
        "retention, expected",
        [
            (Retention(6, RetentionUnit.HOUR), 6 * HOUR),
            (Retention(168, RetentionUnit.HOUR), 168 * HOUR),
            (Retention(500, RetentionUnit.HOUR), 168 * HOUR),
            (Retention(0, RetentionUnit.HOUR), HOUR),
            (Retention(3, RetentionUnit.DAY), 3 * DAY),
            (Retention(30, RetentionUnit.DAY), 7 * DAY),
            (Retention(-1, RetentionUnit.DAY), DAY),
        ],
    )
    def test_clamped(self, policy, retention, expected):
        assert policy.ttl_seconds(retention) == expected


class TestIsValid:
    def test_fresh_value_is_valid(self, policy, sample_utc_now):
        assert policy.is_valid(sample_utc_now, now=sample_utc_now + timedelta(minutes=5))

    def test_boundary_is_exclusive(self, policy, sample_utc_now):
        just_before = sample_utc_now + timedelta(hours=2) - timedelta(seconds=1)
        assert policy.is_valid(sample_utc_now, now=just_before)
        assert not policy.is_valid(sample_utc_now, now=sample_utc_now + timedelta(hours=2))

    def test_retention_is_applied(self, policy, sample_utc_now):
        later = sample_utc_now + timedelta(hours=5)
        assert not policy.is_valid(sample_utc_now, now=later)
        assert policy.is_valid(sample_utc_now, Retention(6, RetentionUnit.HOUR), now=later)

    def test_naive_timestamps_are_treated_as_utc(self, policy, sample_utc_now):
        naive = sample_utc_now.replace(tzinfo=None)
        assert policy.is_valid(naive, now=sample_utc_now + timedelta(minutes=1))

    def test_defaults_to_current_time(self, policy, sample_utc_now):
        assert not policy.is_valid(sample_utc_now)
