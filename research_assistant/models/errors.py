from __future__ import annotations


class ResearchError(Exception):
    """Base class for errors raised inside the research pipeline."""


class InvalidQueryError(ResearchError):
    pass


class ProviderError(ResearchError):
    """An external provider (search API, LLM endpoint) failed."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class NoSourcesError(ResearchError):
    """Every searcher settled with zero usable documents."""


class DeadlineExceeded(ResearchError, TimeoutError):
    def __init__(self, label: str, timeout_ms: int):
        super().__init__(f"{label} timed out after {timeout_ms}ms")
        self.label = label
        self.timeout_ms = timeout_ms


class ResearchCancelled(ResearchError):
    """The caller abandoned the query; no further stage is started."""
