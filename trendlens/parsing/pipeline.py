"""
ResponseRepairPipeline: raw search text -> validated topics.

Strategies run in order and the first non-empty result wins:

1. ``json_array``: direct array extraction, which also repairs truncated
   arrays and salvages objects from corrupted JSON
2. ``structured_text``: numbered / bold / two-line plain-text layouts
3. ``sentence_mining``: consecutive prose sentences as title + summary

Plain-text strategies are skipped whenever the response contains a JSON
array of objects; for such responses prose mining only produces noise.
``parse()`` never raises and returns ``[]`` when every strategy fails;
``parse_or_fallback()`` substitutes the generic fallback topic.
"""

import logging
from typing import Callable, List, NamedTuple, Optional, Sequence

from trendlens.models import Topic, is_valid_topic
from trendlens.parsing.json_repair import extract_json_topics, has_json_candidate
from trendlens.parsing.text_extraction import extract_structured_text, mine_sentences
from trendlens.utils import DEFAULT_SEARCH_URL_BASE, build_search_url

logger = logging.getLogger(__name__)

StrategyFunc = Callable[[str, str, int, str], List[Topic]]


class Strategy(NamedTuple):
    """One named extraction step: ``func(raw, keyword, max_results, url_base)``."""

    name: str
    func: StrategyFunc
    plain_text_only: bool = False


DEFAULT_STRATEGIES = (
    Strategy("json_array", extract_json_topics),
    Strategy("structured_text", extract_structured_text, plain_text_only=True),
    Strategy("sentence_mining", mine_sentences, plain_text_only=True),
)


def fallback_topic(keyword: str, url_base: str = DEFAULT_SEARCH_URL_BASE) -> Topic:
    """Synthetic topic for a search that succeeded but could not be parsed."""
    return Topic(
        title=f"Current {keyword[:1].upper()}{keyword[1:]} Developments",
        summary=(
            f"Web search successfully found current information about {keyword}, "
            "but the response format requires manual review. "
            "The system detected real sources and current data."
        ),
        search_url=build_search_url(f"{keyword} latest news", base=url_base),
    )


def unavailable_topic(keyword: str, url_base: str = DEFAULT_SEARCH_URL_BASE) -> Topic:
    """Synthetic topic for a keyword whose search call failed."""
    return Topic(
        title=f"{keyword} Topics Unavailable",
        summary="Unable to fetch trending topics at this time. Please try again later.",
        search_url=build_search_url(keyword, base=url_base),
    )


class ResponseRepairPipeline:
    """Ordered, pluggable extraction of topics from model output.

    Args:
        strategies: Override the strategy table (tests, experiments).
        search_url_base: Prefix for generated ``search_url`` values.
    """

    def __init__(
        self,
        strategies: Optional[Sequence[Strategy]] = None,
        search_url_base: str = DEFAULT_SEARCH_URL_BASE,
    ) -> None:
        self.strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES
        self.search_url_base = search_url_base

    def parse(self, raw_text: str, keyword: str, max_results: int) -> List[Topic]:
        """Extract up to ``max_results`` valid topics; ``[]`` when nothing parses."""
        if not raw_text or not raw_text.strip():
            logger.warning("[REPAIR] empty response for '%s'", keyword)
            return []

        json_shaped = has_json_candidate(raw_text)
        for strategy in self.strategies:
            if strategy.plain_text_only and json_shaped:
                continue
            try:
                topics = strategy.func(raw_text, keyword, max_results, self.search_url_base)
            except Exception as exc:
                logger.warning(
                    "[REPAIR] strategy %s crashed for '%s': %s", strategy.name, keyword, exc
                )
                continue

            topics = [topic for topic in topics if is_valid_topic(topic.title, topic.summary)]
            if topics:
                logger.info(
                    "[REPAIR] %d topics for '%s' via %s", len(topics), keyword, strategy.name
                )
                return topics[:max_results]

        logger.warning(
            "[REPAIR] no strategy produced topics for '%s' (%d chars)", keyword, len(raw_text)
        )
        return []

    def parse_or_fallback(self, raw_text: str, keyword: str, max_results: int) -> List[Topic]:
        """Like :meth:`parse`, but never empty."""
        return self.parse(raw_text, keyword, max_results) or [
            fallback_topic(keyword, self.search_url_base)
        ]

    def fallback_topic(self, keyword: str) -> Topic:
        return fallback_topic(keyword, self.search_url_base)

    def unavailable_topic(self, keyword: str) -> Topic:
        return unavailable_topic(keyword, self.search_url_base)
