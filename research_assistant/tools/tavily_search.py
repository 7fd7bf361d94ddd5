from __future__ import annotations

import asyncio
from typing import Any, Callable, Protocol

from tavily import AsyncTavilyClient

from research_assistant.models.research import SourceDocument, Strategy
from research_assistant.services.credentials import TAVILY_API_KEY, CredentialProvider
from research_assistant.services.env_safety import sanitize_ssl_keylogfile
from research_assistant.services.logger import logger
from research_assistant.services.strategy import classify, filter_for_speed
from research_assistant.tools import search_utils, web_utils

MAX_MERGED_RESULTS = 15
MAX_CONTENT_CHARS = 4000
FAN_OUT_QUERIES = 3


class WebSearchProvider(Protocol):
    async def search(self, query: str, strategy: Strategy | None = None) -> list[SourceDocument]: ...


def provider_score(value: Any) -> float:
    try:
        return float(value or 0.0)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric Tavily score {value!r}")
        return 0.0


def result_to_document(result: Any) -> SourceDocument | None:
    if not isinstance(result, dict):
        return None
    url = str(result.get("url") or "")
    content = str(result.get("content") or "")
    if not url or not content:
        return None
    return SourceDocument(
        content=content,
        source_url=url,
        title=str(result.get("title") or ""),
        domain=web_utils.extract_domain(url),
        relevance_score=provider_score(result.get("score")),
        content_length=len(content),
        provider="tavily",
    )


class TavilySearcher:
    """Web search over Tavily with strategy-dependent depth and fan-out."""

    def __init__(
        self,
        credentials: CredentialProvider,
        *,
        client_factory: Callable[..., Any] = AsyncTavilyClient,
    ):
        self._credentials = credentials
        self._client_factory = client_factory

    async def search(self, query: str, strategy: Strategy | None = None) -> list[SourceDocument]:
        api_key = self._credentials.get(TAVILY_API_KEY)
        if not api_key:
            logger.warning("Tavily API key is not configured, skipping web search")
            return []

        mode = Strategy(strategy) if strategy else classify(query)
        try:
            sanitize_ssl_keylogfile()
            client = self._client_factory(api_key=api_key)
            if mode is Strategy.QUICK:
                raw = await self._query(client, query, search_depth="basic", max_results=8)
            elif mode is Strategy.STANDARD:
                raw = await self._query(client, query, search_depth="advanced", max_results=10)
            else:
                raw = await self._fan_out(client, query)
        except Exception as e:
            logger.warning(f"Tavily search failed for '{query}': {e}")
            return []

        documents = [doc for doc in (result_to_document(r) for r in raw) if doc is not None]
        merged = search_utils.merge_and_rank(documents, query, limit=MAX_MERGED_RESULTS)
        cleaned = [doc.with_content(web_utils.clean_content(doc.content, MAX_CONTENT_CHARS)) for doc in merged]
        results = filter_for_speed(cleaned)
        logger.info(f"Tavily returned {len(results)} documents for '{query}' ({mode.value})")
        return results

    async def _query(self, client: Any, query: str, *, search_depth: str, max_results: int) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = {
            "query": query,
            "search_depth": search_depth,
            "max_results": max_results,
            "include_answer": False,
            "include_raw_content": False,
            "exclude_domains": list(search_utils.EXCLUDED_DOMAINS),
        }
        include_domains = search_utils.relevant_domains(query)
        if include_domains:
            kwargs["include_domains"] = include_domains
        response = await client.search(**kwargs)
        return list(response.get("results", []))

    async def _fan_out(self, client: Any, query: str) -> list[dict[str, Any]]:
        variants = search_utils.generate_search_queries(query, max_queries=FAN_OUT_QUERIES)
        outcomes = await asyncio.gather(
            *(self._query(client, variant, search_depth="advanced", max_results=5) for variant in variants),
            return_exceptions=True,
        )
        merged: list[dict[str, Any]] = []
        for variant, outcome in zip(variants, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Tavily variant '{variant}' failed: {outcome}")
                continue
            merged.extend(outcome)
        return merged
