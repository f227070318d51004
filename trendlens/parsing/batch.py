"""Parsing of a single batched response covering several keywords.

The batch prompt asks for ``[{"keyword": ..., "topics": [{title, summary}]}]``.
Validation is all-or-nothing: any malformed element makes the whole
response unusable and the caller falls back to per-keyword fetches.
"""

import json
import logging
import re
from typing import Dict, List, Optional, Sequence

from trendlens.models import CACHE_KEY_PREFIX, KeywordRequest, Topic, cache_key
from trendlens.parsing.json_repair import clean_candidate, topics_from_items
from trendlens.utils import DEFAULT_SEARCH_URL_BASE

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_OUTER_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def _load_batch_array(raw_text: str) -> Optional[list]:
    fenced = _FENCE_RE.search(raw_text)
    candidates = [fenced.group(1)] if fenced else []
    outer = _OUTER_ARRAY_RE.search(raw_text)
    if outer:
        candidates.append(outer.group(0))

    for candidate in candidates:
        try:
            data = json.loads(clean_candidate(candidate))
        except ValueError:
            continue
        if isinstance(data, list):
            return data
    return None


def parse_batch_response(
    raw_text: str,
    requests: Sequence[KeywordRequest],
    search_url_base: str = DEFAULT_SEARCH_URL_BASE,
    key_prefix: str = CACHE_KEY_PREFIX,
) -> Optional[Dict[str, List[Topic]]]:
    """Map each requested keyword's cache key (under ``key_prefix``) to its topics.

    Returns ``None`` (reject the whole batch) when the response is not a
    JSON array, an element lacks ``keyword``/``topics``, an element has no
    valid topic, or a requested keyword is missing.  Topic lists are cut to
    the largest ``max_results`` requested for that keyword.
    """
    data = _load_batch_array(raw_text or "")
    if data is None:
        logger.warning("[REPAIR] batch response is not a JSON array, rejecting batch")
        return None

    limits: Dict[str, int] = {}
    for request in requests:
        key = cache_key(request.keyword, key_prefix)
        limits[key] = max(limits.get(key, 0), request.max_results)

    parsed: Dict[str, List[Topic]] = {}
    for element in data:
        if not isinstance(element, dict):
            logger.warning("[REPAIR] batch element is not an object, rejecting batch")
            return None
        keyword, items = element.get("keyword"), element.get("topics")
        if not isinstance(keyword, str) or not keyword.strip() or not isinstance(items, list):
            logger.warning("[REPAIR] batch element missing keyword/topics, rejecting batch")
            return None

        key = cache_key(keyword, key_prefix)
        if key not in limits:
            logger.debug("[REPAIR] ignoring unrequested batch keyword '%s'", keyword)
            continue
        topics = topics_from_items(items, search_url_base)
        if not topics:
            logger.warning("[REPAIR] batch element for '%s' has no valid topics, rejecting batch", keyword)
            return None
        parsed[key] = topics[: limits[key]]

    missing = [key for key in limits if key not in parsed]
    if missing:
        logger.warning("[REPAIR] batch response missing %s, rejecting batch", ", ".join(missing))
        return None
    return parsed
