from __future__ import annotations

import asyncio

import pytest

from research_assistant.config import ResearchConfig
from research_assistant.models.research import SourceDocument
from research_assistant.services.credentials import StaticCredentialProvider
from research_assistant.services.resilience import RetryPolicy


class StubSearcher:
    """Searcher returning canned documents, raising, or hanging."""

    def __init__(self, documents=None, *, error: Exception | None = None, delay_s: float = 0.0):
        self.documents = list(documents or [])
        self.error = error
        self.delay_s = delay_s
        self.queries: list[str] = []
        self.strategies: list = []

    async def search(self, query: str, strategy=None):
        self.queries.append(query)
        self.strategies.append(strategy)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return list(self.documents)


class HangingSearcher(StubSearcher):
    """Searcher that never answers and records when it is cancelled."""

    def __init__(self):
        super().__init__()
        self.cancelled = asyncio.Event()

    async def search(self, query: str, strategy=None):
        self.queries.append(query)
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled.set()
            raise
        return []


class StubModel:
    """Language model answering every prompt with the same text."""

    def __init__(self, response: str = "", *, error: Exception | None = None, delay_s: float = 0.0):
        self.response = response
        self.error = error
        self.delay_s = delay_s
        self.prompts: list[str] = []

    async def invoke(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.response


def make_document(url: str, content: str, title: str = "", **kwargs) -> SourceDocument:
    from research_assistant.tools.web_utils import extract_domain

    return SourceDocument(
        content=content,
        source_url=url,
        title=title,
        domain=extract_domain(url),
        content_length=len(content),
        **kwargs,
    )


@pytest.fixture
def fast_config() -> ResearchConfig:
    return ResearchConfig(
        retry_backoff_ms=0,
        embed_retry_delay_ms=0,
        search_timeouts_ms={"quick": 500, "standard": 500, "comprehensive": 500},
        processing_timeouts_ms={"quick": 2000, "standard": 2000, "comprehensive": 2000},
    )


@pytest.fixture
def credentials() -> StaticCredentialProvider:
    return StaticCredentialProvider({})


@pytest.fixture
def no_backoff() -> RetryPolicy:
    return RetryPolicy(max_attempts=2, backoff_ms=0)
