"""
JSON-shaped extraction from LLM web-search responses.

Model output is "mostly JSON": arrays wrapped in markdown fences, preceded
by chatter, cut off mid-string when the output budget runs out, or with a
stray quote that breaks the document.  This module finds array-shaped
candidates, cleans them, repairs truncated ones and, as a last resort,
salvages individual objects out of a corrupted candidate.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from trendlens.models import Topic, is_valid_topic
from trendlens.utils import build_search_url

logger = logging.getLogger(__name__)

# Ordered candidate shapes.  A capture group, when present, is the candidate.
CANDIDATE_PATTERNS = [
    ("fenced_json", re.compile(r"```json\s*(\[[\s\S]*?\])\s*```", re.IGNORECASE)),
    ("fenced_block", re.compile(r"```\s*(\[[\s\S]*?\])\s*```")),
    ("bare_array", re.compile(r"\[[\s\S]*?\]")),
    ("greedy_array", re.compile(r"\[[\s\S]*\]")),
    ("json_array_marker", re.compile(r"JSON ARRAY:\s*(\[[\s\S]*?\])")),
    ("here_are_marker", re.compile(r"Here are.*?(\[[\s\S]*?\])", re.IGNORECASE)),
    ("topics_marker", re.compile(r"topics.*?(\[[\s\S]*?\])", re.IGNORECASE)),
    ("unterminated_tail", re.compile(r"\[\s*\{[\s\S]*$")),
]

_JSON_STRING = r'"((?:[^"\\]|\\.)*)"'
_EXTRA_FIELD = r'(?:\s*,\s*"[^"]*"\s*:\s*(?:"(?:[^"\\]|\\.)*"|[^,{}\[\]"]+))*'

# A complete {"title": .., "summary": .., <more fields>} object.
COMPLETE_OBJECT_RE = re.compile(
    r'\{\s*"title"\s*:\s*' + _JSON_STRING
    + r'\s*,\s*"summary"\s*:\s*' + _JSON_STRING
    + _EXTRA_FIELD + r"\s*\}"
)

_SALVAGE_SINGLE_LINE_RE = re.compile(
    r'\{\s*"title"\s*:\s*"([^"]+)"\s*,\s*"summary"\s*:\s*"([^"]+)"\s*\}'
)
_SALVAGE_MULTI_LINE_RE = re.compile(
    r'\{\s*"title"\s*:\s*"([^"]+)"\s*,\s*"summary"\s*:\s*"((?:[^"\\]|\\.)*?)"\s*\}',
    re.DOTALL,
)

_SOURCE_URL_FIELDS = ("url", "sourceUrl", "source_url")

UNTERMINATED_STRING_MARKER = "Unterminated string"


# =============================================================================
# CANDIDATES
# =============================================================================


def find_candidates(raw_text: str) -> List[str]:
    """Return distinct array-shaped substrings in pattern order."""
    candidates: List[str] = []
    for _, pattern in CANDIDATE_PATTERNS:
        match = pattern.search(raw_text)
        if not match:
            continue
        candidate = match.group(1) if match.groups() else match.group(0)
        if candidate not in candidates:
            candidates.append(candidate)
    return candidates


def has_json_candidate(raw_text: str) -> bool:
    """True when the text contains an array of objects (not just ``[1]`` citations)."""
    return any("{" in candidate for candidate in find_candidates(raw_text))


def clean_candidate(text: str) -> str:
    """Normalize the common non-JSON noise around and inside a candidate."""
    text = re.sub(r"```json|```", "", text)
    text = re.sub(r",\s*\]", "]", text)
    text = re.sub(r",\s*\}", "}", text)
    text = re.sub(r"[\r\n\t]", " ", text)
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r'"\s*:\s*"', '":"', text)
    return text.strip()


# =============================================================================
# TRUNCATION
# =============================================================================


def is_truncated(text: str) -> bool:
    """Heuristically detect output that was cut off before the array closed."""
    stripped = text.strip()
    if stripped.endswith('"') and not stripped.endswith(('"}', '"]')):
        return True
    if '{"title"' in stripped and not stripped.endswith("]"):
        return True
    if re.search(r'\{\s*"title".*"summary".*[^}\]]$', stripped):
        return True
    return stripped.count("{") > stripped.count("}")


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value.replace('\\"', '"')


def harvest_objects(text: str) -> List[Dict[str, Any]]:
    """Collect every syntactically complete topic object, deduped by title."""
    objects: List[Dict[str, Any]] = []
    seen = set()
    for match in COMPLETE_OBJECT_RE.finditer(text):
        try:
            item = json.loads(match.group(0))
        except ValueError:
            item = {"title": _unescape(match.group(1)), "summary": _unescape(match.group(2))}
        if not isinstance(item, dict):
            continue
        title = str(item.get("title", "")).strip()
        if not title or title in seen:
            continue
        seen.add(title)
        objects.append(item)
    return objects


def repair_truncated_json(text: str) -> str:
    """Turn a truncated array into parseable JSON.

    Complete objects are re-serialized as a fresh array.  When none can be
    harvested the text is cut after the last ``}`` and the array closed.
    Text that cannot be repaired is returned unchanged.
    """
    objects = harvest_objects(text)
    if objects:
        logger.debug("[REPAIR] harvested %d complete objects from truncated JSON", len(objects))
        return json.dumps(objects, ensure_ascii=False)

    if '"title":' in text and '"summary":' in text:
        last_close = text.rfind("}")
        if last_close > -1:
            repaired = text[: last_close + 1]
            if "[" in repaired and not repaired.rstrip().endswith("]"):
                repaired = re.sub(r",\s*$", "", repaired) + "]"
            logger.debug("[REPAIR] cut truncated JSON at last complete object")
            return repaired

    return text


def salvage_corrupted_json(text: str) -> List[Dict[str, str]]:
    """Pull ``{title, summary}`` pairs out of JSON that will not deserialize."""
    found: List[Dict[str, str]] = []
    seen = set()
    for pattern in (_SALVAGE_SINGLE_LINE_RE, _SALVAGE_MULTI_LINE_RE):
        for match in pattern.finditer(text):
            title = match.group(1).strip()
            if title in seen:
                continue
            seen.add(title)
            found.append({"title": title, "summary": match.group(2).strip().replace('\\"', '"')})
    return found


# =============================================================================
# TOPIC CONVERSION
# =============================================================================


def topic_from_item(
    item: Any,
    url_base: str,
    keyword: Optional[str] = None,
) -> Optional[Topic]:
    """Build a ``Topic`` from a decoded object, or ``None`` if it is invalid.

    The search URL is built from the title alone, or from
    ``keyword + " " + title`` when ``keyword`` is given.
    """
    if not isinstance(item, dict):
        return None
    title, summary = item.get("title"), item.get("summary")
    if not is_valid_topic(title, summary):
        return None
    title, summary = title.strip(), summary.strip()

    source_url = None
    for field_name in _SOURCE_URL_FIELDS:
        value = item.get(field_name)
        if isinstance(value, str) and value.strip():
            source_url = value.strip()
            break

    url_text = f"{keyword} {title}" if keyword else title
    return Topic(
        title=title,
        summary=summary,
        search_url=build_search_url(url_text, base=url_base),
        source_url=source_url,
    )


def topics_from_items(
    items: Iterable[Any],
    url_base: str,
    keyword: Optional[str] = None,
) -> List[Topic]:
    topics = []
    for item in items:
        topic = topic_from_item(item, url_base, keyword=keyword)
        if topic is not None:
            topics.append(topic)
    return topics


# =============================================================================
# STRATEGY
# =============================================================================


def extract_json_topics(raw_text: str, keyword: str, max_results: int, url_base: str) -> List[Topic]:
    """Direct array extraction with truncation repair and corrupted-JSON salvage.

    Candidates are tried in order; the first one that yields at least one
    valid topic wins.
    """
    for candidate in find_candidates(raw_text):
        cleaned = clean_candidate(candidate)
        if is_truncated(cleaned):
            logger.debug("[REPAIR] truncated candidate for '%s', repairing", keyword)
            cleaned = repair_truncated_json(cleaned)

        try:
            data = json.loads(cleaned)
        except ValueError as exc:
            logger.debug("[REPAIR] candidate for '%s' failed to parse: %s", keyword, exc)
            if UNTERMINATED_STRING_MARKER in str(exc):
                salvaged = topics_from_items(
                    salvage_corrupted_json(candidate), url_base, keyword=keyword
                )
                if salvaged:
                    logger.info(
                        "[REPAIR] salvaged %d topics from corrupted JSON for '%s'",
                        len(salvaged),
                        keyword,
                    )
                    return salvaged
            continue

        items = data if isinstance(data, list) else None
        if not items:
            continue
        topics = topics_from_items(items, url_base)
        if topics:
            return topics
    return []
