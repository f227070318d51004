"""
Fetch-strategy selection: one batched search call vs. one call per keyword.

A batched call is cheaper, but the larger the JSON payload the model has to
emit, the more likely it is to be truncated mid-array.  The selector scores
the *predicted* payload size (never the keyword content) and prefers
individual calls once the risk crosses any of the configured thresholds.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from trendlens.models import KeywordRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchThresholds:
    """Risk thresholds above which batching is abandoned.

    Tuning these is a configuration change (see ``config/settings.yaml``),
    not a code change.
    """

    max_total_topics: int = 12
    max_estimated_tokens: int = 2000
    tokens_per_topic: int = 100
    # Optional per-keyword depth cap; None disables it.
    max_topics_per_keyword: Optional[int] = None


@dataclass(frozen=True)
class BatchAssessment:
    """Scored view of a batch, kept for logging and tests."""

    keyword_count: int
    total_topics: int
    estimated_tokens: int
    deepest_request: int
    use_batch: bool
    reason: str


class FetchStrategySelector:
    """Decide between the batch path and the individual path.

    Args:
        thresholds: Risk thresholds. Defaults to ``BatchThresholds()``.

    Usage::

        selector = FetchStrategySelector()
        if selector.should_batch(requests):
            ...
    """

    def __init__(self, thresholds: Optional[BatchThresholds] = None) -> None:
        self.thresholds = thresholds or BatchThresholds()

    def assess(self, requests: Sequence[KeywordRequest]) -> BatchAssessment:
        """Score ``requests`` and return the full decision record."""
        limits = self.thresholds
        total_topics = sum(request.max_results for request in requests)
        estimated_tokens = total_topics * limits.tokens_per_topic
        deepest = max((request.max_results for request in requests), default=0)

        if total_topics > limits.max_total_topics:
            reason = f"total_topics={total_topics} > {limits.max_total_topics}"
        elif estimated_tokens > limits.max_estimated_tokens:
            reason = f"estimated_tokens={estimated_tokens} > {limits.max_estimated_tokens}"
        elif limits.max_topics_per_keyword is not None and deepest > limits.max_topics_per_keyword:
            reason = f"max_results={deepest} > {limits.max_topics_per_keyword}"
        else:
            reason = "within batch limits"

        return BatchAssessment(
            keyword_count=len(requests),
            total_topics=total_topics,
            estimated_tokens=estimated_tokens,
            deepest_request=deepest,
            use_batch=reason == "within batch limits",
            reason=reason,
        )

    def should_batch(self, requests: Sequence[KeywordRequest]) -> bool:
        """Return ``True`` when one batched call is acceptable."""
        assessment = self.assess(requests)
        logger.debug(
            "[STRATEGY] keywords=%d topics=%d tokens~%d -> %s (%s)",
            assessment.keyword_count,
            assessment.total_topics,
            assessment.estimated_tokens,
            "batch" if assessment.use_batch else "individual",
            assessment.reason,
        )
        return assessment.use_batch
