"""Prompt templates for the web-search model."""

import json
from typing import Sequence

from trendlens.models import KeywordRequest

KEYWORD_PROMPT = """Search web for {max_results} trending "{keyword}" topics (last 48h).

OUTPUT: [{{"title":"<60 chars","summary":"<80 chars"}}]

Rules:
- {max_results} topics only
- Real current events
- Brief titles/summaries
- Factual data
- JSON only

Array:"""

BATCH_PROMPT = """Search web for trending topics (last 48h) for each keyword below.

Keywords (with topic counts):
{keyword_lines}

OUTPUT: [{{"keyword":"<keyword exactly as given>","topics":[{{"title":"<60 chars","summary":"<80 chars"}}]}}]

Rules:
- One element per keyword, in the order given
- Exactly the requested number of topics per keyword
- Real current events
- Brief titles/summaries
- JSON only

Array:"""


def build_keyword_prompt(keyword: str, max_results: int) -> str:
    return KEYWORD_PROMPT.format(keyword=keyword, max_results=max_results)


def build_batch_prompt(requests: Sequence[KeywordRequest]) -> str:
    """One prompt covering every request; keywords are JSON-quoted."""
    keyword_lines = "\n".join(
        f"- {json.dumps(request.keyword, ensure_ascii=False)}: {request.max_results}"
        for request in requests
    )
    return BATCH_PROMPT.format(keyword_lines=keyword_lines)
