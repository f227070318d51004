"""
Async OpenAI web-search client.

Uses ``httpx`` to call the OpenAI Responses API with the
``web_search_preview`` tool so the model can read current news before
answering.  The orchestrator only sees text in / text out; everything
provider-specific (payload shape, output extraction, error mapping) stays
in this module.

Calls are never retried here: a slow or failing keyword degrades to a
fallback result instead of holding up the whole request.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from trendlens.exceptions import ProviderError, SearchTimeoutError

logger = logging.getLogger(__name__)


class OpenAIWebSearchClient:
    """Async wrapper around ``POST /responses`` with live web search.

    Args:
        api_key: OpenAI API key.  Falls back to the ``OPENAI_API_KEY``
            environment variable.
        base_url: API root, e.g. ``https://api.openai.com/v1``.
        transport: Optional ``httpx`` transport (``httpx.MockTransport`` in
            tests).

    Usage::

        client = OpenAIWebSearchClient()
        text = await client.fetch(prompt, model="gpt-4o-mini", timeout_ms=25000)
    """

    BASE_URL: str = "https://api.openai.com/v1"
    TOOLS: List[Dict[str, str]] = [{"type": "web_search_preview"}]

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key: str = api_key or os.environ.get("OPENAI_API_KEY", "")
        self.base_url: str = (base_url or self.BASE_URL).rstrip("/")
        self._transport = transport

    async def fetch(self, prompt: str, model: str, timeout_ms: int) -> str:
        """Run one web-search prompt and return the model's text output.

        Raises:
            SearchTimeoutError: The request exceeded ``timeout_ms``.
            ProviderError: Transport failure, non-2xx status, undecodable
                body, or a response without text output.
        """
        timeout = timeout_ms / 1000
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/responses",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={"model": model, "input": prompt, "tools": self.TOOLS},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            raise SearchTimeoutError(timeout, target="web search") from exc
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                f"Responses API error: {exc.response.text[:200]}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Responses API request failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(f"Responses API returned invalid JSON: {exc}") from exc

        content = self.extract_text(data)
        if not content.strip():
            raise ProviderError("No content received from OpenAI Responses API")

        logger.debug(
            "[FETCH] web search completed: model=%s, prompt_len=%d, response_len=%d",
            model,
            len(prompt),
            len(content),
        )
        return content

    @staticmethod
    def extract_text(response: Dict[str, Any]) -> str:
        """Extract the answer text from a Responses API payload.

        Prefers the top-level ``output_text`` convenience field, otherwise
        concatenates the ``output_text`` parts of every ``message`` item.
        Returns an empty string for unexpected shapes.
        """
        if not isinstance(response, dict):
            return ""
        text = response.get("output_text")
        if isinstance(text, str) and text:
            return text

        parts: List[str] = []
        for item in response.get("output") or []:
            if not isinstance(item, dict) or item.get("type") != "message":
                continue
            for part in item.get("content") or []:
                if isinstance(part, dict) and part.get("type") == "output_text":
                    parts.append(part.get("text", ""))
        return "".join(parts)
