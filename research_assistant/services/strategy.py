"""Query complexity classification and the budgets derived from it."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from research_assistant.models.research import SourceDocument, Strategy
from research_assistant.tools import web_utils


@dataclass(frozen=True, slots=True)
class StrategyBudgets:
    search_timeout_ms: int
    processing_timeout_ms: int
    chunk_size: int
    max_documents: int


DEFAULT_SEARCH_TIMEOUTS_MS: dict[str, int] = {"quick": 3000, "standard": 5000, "comprehensive": 8000}
DEFAULT_PROCESSING_TIMEOUTS_MS: dict[str, int] = {"quick": 5000, "standard": 10000, "comprehensive": 15000}
DOCUMENT_COUNTS: dict[str, int] = {"quick": 6, "standard": 12, "comprehensive": 18}


def classify(query: str) -> Strategy:
    text = (query or "").strip()
    if not text:
        return Strategy.QUICK
    length = len(text)
    word_count = len(text.split())
    if length < 30 and word_count <= 5:
        return Strategy.QUICK
    if length > 100 or word_count > 15:
        return Strategy.COMPREHENSIVE
    return Strategy.STANDARD


def optimal_chunk_size(document_count: int, strategy: Strategy | str) -> int:
    if Strategy(strategy) is Strategy.QUICK:
        return 600
    if document_count > 20:
        return 800
    return 1200


def optimal_document_count(strategy: Strategy | str) -> int:
    return DOCUMENT_COUNTS.get(Strategy(strategy).value, 10)


def budgets_for(
    strategy: Strategy | str,
    *,
    search_timeouts_ms: Mapping[str, int] | None = None,
    processing_timeouts_ms: Mapping[str, int] | None = None,
    document_count: int = 0,
) -> StrategyBudgets:
    key = Strategy(strategy).value
    search = search_timeouts_ms or DEFAULT_SEARCH_TIMEOUTS_MS
    processing = processing_timeouts_ms or DEFAULT_PROCESSING_TIMEOUTS_MS
    return StrategyBudgets(
        search_timeout_ms=int(search.get(key, DEFAULT_SEARCH_TIMEOUTS_MS[key])),
        processing_timeout_ms=int(processing.get(key, DEFAULT_PROCESSING_TIMEOUTS_MS[key])),
        chunk_size=optimal_chunk_size(document_count, key),
        max_documents=optimal_document_count(key),
    )


def filter_for_speed(documents: Sequence[SourceDocument], *, limit: int = 10) -> list[SourceDocument]:
    """Drop bodies too short to be useful or too long to process quickly."""
    return [doc for doc in documents if 100 < len(doc.content) < 5000][:limit]


def speed_score(doc: SourceDocument) -> float:
    score = 1.0
    if 200 <= len(doc.content) <= 2000:
        score += 2
    if web_utils.is_authoritative_domain(doc.domain or web_utils.extract_domain(doc.source_url)):
        score += 1
    if doc.title:
        score += 0.5
    return score


def prioritize_documents(documents: Sequence[SourceDocument]) -> list[SourceDocument]:
    return sorted(documents, key=speed_score, reverse=True)
