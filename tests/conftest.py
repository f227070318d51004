"""Shared fixtures for the trendlens test suite."""

import asyncio
import json
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

import pytest

from trendlens.cache.memory import MemoryKeyStore
from trendlens.config import Settings
from trendlens.exceptions import ProviderError


# ---------------------------------------------------------------------------
# Ensure we don't hit real APIs or pick up local overrides during tests
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _block_env_keys(monkeypatch):
    """Clear API keys and every settings override from the environment."""
    keys = [
        "OPENAI_API_KEY",
        "OPENAI_MODEL",
        "OPENAI_BASE_URL",
        "REDIS_URL",
        "CACHE_BACKEND",
        "MAX_KEYWORDS",
        "CACHE_DURATION_HOURS",
        "KEYWORD_TIMEOUT_SECONDS",
        "BATCH_TIMEOUT_SECONDS",
        "LOG_LEVEL",
        "LOG_DIR",
    ]
    for key in keys:
        monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Deterministic time
# ---------------------------------------------------------------------------
class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def sample_utc_now():
    """A fixed UTC datetime for deterministic tests."""
    return datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(sample_utc_now):
    return FakeClock(sample_utc_now)


@pytest.fixture
def memory_store(clock):
    return MemoryKeyStore(clock=clock)


@pytest.fixture
def settings():
    """Defaults only; never reads config/settings.yaml."""
    return Settings()


# ---------------------------------------------------------------------------
# Fake search client
# ---------------------------------------------------------------------------
def topics_json(*titles: str, **extra) -> str:
    """A well-formed JSON array response with one valid topic per title."""
    return json.dumps(
        [
            dict({"title": title, "summary": f"Latest coverage and analysis of {title.lower()}."}, **extra)
            for title in titles
        ]
    )


_KEYWORD_PROMPT_RE = re.compile(r'trending "(.+?)" topics')
BATCH_PROMPT_PREFIX = "Search web for trending topics (last 48h) for each keyword"

Response = Union[str, Exception]


class FakeSearchClient:
    """Scripted ``SearchClient``.

    ``responses`` maps keyword -> raw text (or an exception to raise).
    ``delays`` maps keyword -> seconds to sleep before answering.
    ``batch_response`` answers batch prompts; ``None`` makes them fail and
    an exception is raised as-is.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Response]] = None,
        default: Optional[Response] = None,
        delays: Optional[Dict[str, float]] = None,
        batch_response: Optional[Response] = None,
    ) -> None:
        self.responses = dict(responses or {})
        self.default = default
        self.delays = dict(delays or {})
        self.batch_response = batch_response
        self.keyword_calls: List[str] = []
        self.batch_calls = 0
        self.prompts: List[str] = []

    async def fetch(self, prompt: str, model: str, timeout_ms: int) -> str:
        self.prompts.append(prompt)
        if prompt.startswith(BATCH_PROMPT_PREFIX):
            self.batch_calls += 1
            if self.batch_response is None:
                raise ProviderError("batch unavailable", status_code=503)
            if isinstance(self.batch_response, Exception):
                raise self.batch_response
            return self.batch_response

        keyword = _KEYWORD_PROMPT_RE.search(prompt).group(1)
        self.keyword_calls.append(keyword)
        if keyword in self.delays:
            await asyncio.sleep(self.delays[keyword])

        response = self.responses.get(keyword, self.default)
        if response is None:
            response = topics_json(f"{keyword} headline one", f"{keyword} headline two", f"{keyword} headline three")
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def search_client():
    return FakeSearchClient()
