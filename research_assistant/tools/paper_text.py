"""Full-text download for arXiv papers, falling back to the abstract."""
from __future__ import annotations

import asyncio
import io
from dataclasses import replace
from typing import Protocol, Sequence

import httpx
from pypdf import PdfReader

from research_assistant.config import ResearchConfig
from research_assistant.models.research import SourceDocument
from research_assistant.services.env_safety import sanitize_ssl_keylogfile
from research_assistant.services.logger import logger
from research_assistant.services.resilience import run_with_deadline
from research_assistant.tools import web_utils

MAX_PDF_BYTES = 10 * 1024 * 1024
MIN_EXTRACTED_CHARS = 100


class PaperTextFetcher(Protocol):
    async def fetch_text(self, pdf_url: str) -> str: ...


def extract_pdf_text(data: bytes, max_pages: int) -> str:
    reader = PdfReader(io.BytesIO(data))
    texts: list[str] = []
    for index, page in enumerate(reader.pages):
        if index >= max_pages:
            break
        try:
            texts.append(page.extract_text() or "")
        except Exception as e:
            logger.debug(f"PDF page {index} extraction failed: {e}")
    return " ".join(texts)


class ArxivPdfFetcher:
    """Downloads a paper PDF with httpx and extracts its first pages with pypdf."""

    def __init__(self, config: ResearchConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    async def fetch_text(self, pdf_url: str) -> str:
        sanitize_ssl_keylogfile()
        async with httpx.AsyncClient(
            timeout=self.config.provider_http_timeout_s,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            response = await client.get(pdf_url, headers={"User-Agent": "research-assistant/0.1"})
            response.raise_for_status()
        data = response.content
        if len(data) > MAX_PDF_BYTES:
            raise ValueError(f"PDF at {pdf_url} is {len(data)} bytes, over the {MAX_PDF_BYTES} byte limit")
        return await asyncio.to_thread(extract_pdf_text, data, self.config.pdf_max_pages)


def downloadable_papers(documents: Sequence[SourceDocument], limit: int) -> list[SourceDocument]:
    papers = [doc for doc in documents if doc.provider == "arxiv" and doc.metadata.get("pdf_url")]
    return papers[: max(int(limit), 0)]


async def with_full_text(
    fetcher: PaperTextFetcher,
    paper: SourceDocument,
    *,
    timeout_ms: int,
    max_chars: int,
) -> SourceDocument:
    """Replace the abstract with extracted text; any failure keeps the abstract."""
    pdf_url = str(paper.metadata["pdf_url"])
    try:
        raw = await run_with_deadline(fetcher.fetch_text(pdf_url), timeout_ms, "pdf download")
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"Using abstract for {paper.source_url}, PDF unavailable: {e}")
        return paper

    text = web_utils.clean_content(raw, max_chars)
    if len(text) < MIN_EXTRACTED_CHARS:
        logger.info(f"Using abstract for {paper.source_url}, only {len(text)} characters extracted")
        return paper
    enriched = paper.with_content(f"{paper.title}\n\n{text}")
    return replace(enriched, metadata={**paper.metadata, "full_text": True})


async def download_papers(
    fetcher: PaperTextFetcher,
    documents: Sequence[SourceDocument],
    papers: Sequence[SourceDocument],
    *,
    timeout_ms: int,
    max_chars: int,
) -> list[SourceDocument]:
    """Fetch `papers` concurrently and swap them into `documents` in place."""
    enriched = await asyncio.gather(
        *(with_full_text(fetcher, paper, timeout_ms=timeout_ms, max_chars=max_chars) for paper in papers)
    )
    by_url = {paper.source_url: doc for paper, doc in zip(papers, enriched)}
    return [by_url.get(doc.source_url, doc) for doc in documents]
