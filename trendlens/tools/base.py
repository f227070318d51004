"""The search-client seam the orchestrator depends on."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class SearchClient(Protocol):
    """An LLM endpoint with live web search.

    ``fetch`` sends one prompt and returns the model's raw text output.
    Implementations raise ``SearchTimeoutError`` when ``timeout_ms`` is
    exceeded and ``ProviderError`` for any other provider failure.  They do
    not retry; retry and fallback policy belongs to the caller.
    """

    async def fetch(self, prompt: str, model: str, timeout_ms: int) -> str:
        ...
