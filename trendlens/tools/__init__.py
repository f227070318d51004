"""
External search clients.

- SearchClient: protocol the orchestrator is written against
- OpenAIWebSearchClient: OpenAI Responses API with the web-search tool
"""

from trendlens.tools.base import SearchClient
from trendlens.tools.openai_search import OpenAIWebSearchClient

__all__ = [
    "SearchClient",
    "OpenAIWebSearchClient",
]
