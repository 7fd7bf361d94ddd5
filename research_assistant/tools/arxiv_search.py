from __future__ import annotations

import asyncio
from typing import Any, Protocol

import arxiv

from research_assistant.config import ResearchConfig
from research_assistant.models.research import SourceDocument
from research_assistant.services.logger import logger

MAX_PAPERS = 5
MIN_TERM_OVERLAP = 0.4
MIN_SUMMARY_LENGTH = 100

ML_TERMS = ("machine learning", "deep learning", "neural network", "algorithm", "optimization")
ACADEMIC_MARKERS = ("research", "study", "analysis", "method", "result", "conclusion", "experiment")


class AcademicSearchProvider(Protocol):
    async def search(self, query: str) -> list[SourceDocument]: ...


def enhance_query(query: str) -> str:
    """Scope the query to arXiv categories matching its topic."""
    lowered = query.lower()
    if any(term in lowered for term in ML_TERMS):
        return f"({query}) AND (cat:cs.LG OR cat:cs.AI OR cat:stat.ML)"
    if "physics" in lowered or "quantum" in lowered:
        return f"({query}) AND (cat:quant-ph OR cat:physics)"
    if "math" in lowered or "statistics" in lowered:
        return f"({query}) AND (cat:math OR cat:stat)"
    return query


def is_relevant_paper(title: str, summary: str, query: str) -> bool:
    terms = [term for term in query.lower().split() if len(term) > 2]
    if not terms:
        return False
    text = f"{title} {summary}".lower()
    overlap = sum(1 for term in terms if term in text) / len(terms)
    return overlap >= MIN_TERM_OVERLAP and len(summary) > MIN_SUMMARY_LENGTH


def academic_score(content: str) -> float:
    lowered = content.lower()
    score = 0.5
    score += sum(1 for marker in ACADEMIC_MARKERS if marker in lowered) * 0.05
    if len(content) > 1000:
        score += 0.1
    if len(content) > 3000:
        score += 0.1
    if "Abstract" in content or "Introduction" in content:
        score += 0.1
    if "References" in content or "Bibliography" in content:
        score += 0.05
    return min(score, 1.0)


def paper_to_document(paper: Any) -> SourceDocument:
    title = " ".join(str(paper.title or "").split())
    summary = " ".join(str(paper.summary or "").split())
    content = f"{title}\n\n{summary}"
    authors = [str(author) for author in (getattr(paper, "authors", None) or [])]
    published = getattr(paper, "published", None)
    return SourceDocument(
        content=content,
        source_url=str(paper.entry_id),
        title=title,
        domain="arxiv.org",
        relevance_score=academic_score(content),
        content_length=len(content),
        provider="arxiv",
        metadata={
            "authors": authors,
            "published": published.isoformat() if published else None,
            "pdf_url": getattr(paper, "pdf_url", None),
            "categories": list(getattr(paper, "categories", None) or []),
        },
    )


class ArxivSearcher:
    """Academic paper search through the `arxiv` client, run off the event loop."""

    def __init__(self, config: ResearchConfig, *, client: arxiv.Client | None = None):
        self.config = config
        self._client = client or arxiv.Client(page_size=config.arxiv_max_results, num_retries=1)

    def _fetch(self, query: str) -> list[Any]:
        search = arxiv.Search(
            query=enhance_query(query),
            max_results=self.config.arxiv_max_results,
            sort_by=arxiv.SortCriterion.Relevance,
            sort_order=arxiv.SortOrder.Descending,
        )
        return list(self._client.results(search))

    async def search(self, query: str) -> list[SourceDocument]:
        try:
            papers = await asyncio.to_thread(self._fetch, query)
        except Exception as e:
            logger.warning(f"arXiv search failed for '{query}': {e}")
            return []

        relevant = [paper for paper in papers if is_relevant_paper(str(paper.title), str(paper.summary), query)]
        logger.info(f"arXiv returned {len(relevant)} relevant papers for '{query}'")
        return [paper_to_document(paper) for paper in relevant[:MAX_PAPERS]]
