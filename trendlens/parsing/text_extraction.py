"""Topic extraction from plain-text (non-JSON) search responses."""

import logging
import re
from typing import List, Optional, Set

from trendlens.models import Topic, is_valid_topic
from trendlens.utils import build_search_url

logger = logging.getLogger(__name__)

META_PHRASES = ("here are", "trending topics", "json array")

# "1. Title - Summary" / "2) Title: Summary"
_NUMBERED_RE = re.compile(r"^\d+[.)]\s+(?:\*\*)?(.+?)(?:\*\*)?(?:\s*:|\s+[-–—])\s+(.+)$")
# "**Title** summary" / "- **Title**: summary"
_BOLD_RE = re.compile(r"^(?:[-*•]\s*|\d+[.)]\s*)?\*\*(.+?)\*\*\s*[-–—:]?\s*(.+)$")
_LIST_MARKER_RE = re.compile(r"^(?:#+\s*|\d+[.)]\s*|[-*•]\s+)")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_CLAUSE_SPLIT_RE = re.compile(r"[,;:]|\s[-–—]\s")
_MARKDOWN_RE = re.compile(r"[*_`#>]+")

TITLE_LINE_RANGE = (10, 150)
SUMMARY_LINE_RANGE = (20, 500)
SENTENCE_RANGE = (30, 400)
MAX_MINED_TITLE = 100


def _is_meta(line: str) -> bool:
    lowered = line.lower()
    return any(phrase in lowered for phrase in META_PHRASES)


def _strip_marks(text: str) -> str:
    text = _LIST_MARKER_RE.sub("", text.strip())
    return text.strip().strip("*").strip()


class _Collector:
    """Accumulates unique valid topics up to a limit."""

    def __init__(self, keyword: str, max_results: int, url_base: str) -> None:
        self.keyword = keyword
        self.max_results = max_results
        self.url_base = url_base
        self.topics: List[Topic] = []
        self._titles: Set[str] = set()

    @property
    def full(self) -> bool:
        return len(self.topics) >= self.max_results

    def add(self, title: str, summary: str) -> Optional[Topic]:
        title, summary = title.strip(), summary.strip()
        if not is_valid_topic(title, summary) or title.lower() in self._titles:
            return None
        self._titles.add(title.lower())
        topic = Topic(
            title=title,
            summary=summary,
            search_url=build_search_url(f"{self.keyword} {title}", base=self.url_base),
        )
        self.topics.append(topic)
        return topic


def extract_structured_text(raw_text: str, keyword: str, max_results: int, url_base: str) -> List[Topic]:
    """Numbered lists, bold headings, then title/summary line pairs."""
    collector = _Collector(keyword, max_results, url_base)
    lines = [line.strip() for line in raw_text.splitlines() if line.strip()]

    for line in lines:
        if collector.full:
            break
        if _is_meta(line):
            continue
        match = _NUMBERED_RE.match(line) or _BOLD_RE.match(line)
        if match:
            collector.add(_strip_marks(match.group(1)), match.group(2))

    if collector.topics:
        return collector.topics

    candidates = [_strip_marks(line) for line in lines if not _is_meta(line)]
    index = 0
    while index < len(candidates) - 1 and not collector.full:
        title, summary = candidates[index], candidates[index + 1]
        if (
            TITLE_LINE_RANGE[0] <= len(title) <= TITLE_LINE_RANGE[1]
            and SUMMARY_LINE_RANGE[0] <= len(summary) <= SUMMARY_LINE_RANGE[1]
            and collector.add(title, summary)
        ):
            index += 2
        else:
            index += 1
    return collector.topics


def _title_from_sentence(sentence: str) -> str:
    title = _CLAUSE_SPLIT_RE.split(sentence, maxsplit=1)[0].strip().rstrip(".!?")
    if len(title) > MAX_MINED_TITLE:
        title = title[:MAX_MINED_TITLE].rsplit(" ", 1)[0]
    return title


def mine_sentences(raw_text: str, keyword: str, max_results: int, url_base: str) -> List[Topic]:
    """Last-resort extraction: pair consecutive sentences as title and summary."""
    text = _MARKDOWN_RE.sub("", raw_text)
    text = re.sub(r"\s+", " ", text).strip()
    sentences = [
        sentence.strip()
        for sentence in _SENTENCE_SPLIT_RE.split(text)
        if SENTENCE_RANGE[0] <= len(sentence.strip()) <= SENTENCE_RANGE[1]
        and not _is_meta(sentence)
    ]

    collector = _Collector(keyword, max_results, url_base)
    for index in range(0, len(sentences) - 1, 2):
        if collector.full:
            break
        collector.add(_title_from_sentence(sentences[index]), sentences[index + 1])
    if collector.topics:
        logger.debug("[REPAIR] mined %d topics from prose for '%s'", len(collector.topics), keyword)
    return collector.topics
