from __future__ import annotations

import asyncio
import io

import httpx
import pytest
from pypdf import PdfWriter

from conftest import make_document
from research_assistant.config import ResearchConfig
from research_assistant.tools import paper_text
from research_assistant.tools.paper_text import ArxivPdfFetcher

EXTRACTED = "Section 1 introduces the entanglement distribution protocol and its loss budget. " * 3


def paper(n: int = 1, **metadata):
    return make_document(
        f"http://arxiv.org/abs/2301.0000{n}v1",
        "Paper title\n\nA short abstract describing the measured results in enough words to be useful here.",
        title="Paper title",
        provider="arxiv",
        metadata={"pdf_url": f"http://arxiv.org/pdf/2301.0000{n}v1", **metadata},
    )


class CannedFetcher:
    def __init__(self, text: str = EXTRACTED, *, error: Exception | None = None, delay_s: float = 0.0):
        self.text = text
        self.error = error
        self.delay_s = delay_s

    async def fetch_text(self, pdf_url: str) -> str:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.text


def test_extract_pdf_text_reads_real_pdf_bytes():
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)

    assert paper_text.extract_pdf_text(buffer.getvalue(), max_pages=5).strip() == ""


@pytest.mark.asyncio
async def test_fetcher_downloads_and_extracts(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, content=b"%PDF-1.4 fake")

    def fake_extract(data: bytes, max_pages: int) -> str:
        return f"{len(data)} bytes, first {max_pages} pages"

    monkeypatch.setattr(paper_text, "extract_pdf_text", fake_extract)
    fetcher = ArxivPdfFetcher(ResearchConfig(pdf_max_pages=7), transport=httpx.MockTransport(handler))

    text = await fetcher.fetch_text("http://arxiv.org/pdf/2301.00001v1")

    assert seen["url"] == "http://arxiv.org/pdf/2301.00001v1"
    assert text == "13 bytes, first 7 pages"


@pytest.mark.asyncio
async def test_fetcher_rejects_http_errors_and_oversized_files(monkeypatch):
    missing = ArxivPdfFetcher(ResearchConfig(), transport=httpx.MockTransport(lambda r: httpx.Response(404)))
    with pytest.raises(httpx.HTTPStatusError):
        await missing.fetch_text("http://arxiv.org/pdf/missing")

    monkeypatch.setattr(paper_text, "MAX_PDF_BYTES", 4)
    large = ArxivPdfFetcher(ResearchConfig(), transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"%PDF-1.4")))
    with pytest.raises(ValueError):
        await large.fetch_text("http://arxiv.org/pdf/large")


def test_downloadable_papers_needs_arxiv_provider_and_pdf_url():
    web = make_document("https://example.com/post", "body " * 40)
    no_pdf = make_document("http://arxiv.org/abs/2301.00009v1", "body " * 40, provider="arxiv")
    papers = [paper(1), paper(2), paper(3)]

    assert paper_text.downloadable_papers([web, no_pdf, *papers], limit=2) == papers[:2]
    assert paper_text.downloadable_papers(papers, limit=0) == []


@pytest.mark.asyncio
async def test_with_full_text_replaces_abstract():
    enriched = await paper_text.with_full_text(CannedFetcher(), paper(), timeout_ms=1000, max_chars=8000)

    assert enriched.content.startswith("Paper title\n\nSection 1 introduces")
    assert enriched.content_length == len(enriched.content)
    assert enriched.metadata["full_text"] is True
    assert enriched.metadata["pdf_url"] == "http://arxiv.org/pdf/2301.00001v1"


@pytest.mark.asyncio
async def test_with_full_text_caps_extracted_characters():
    enriched = await paper_text.with_full_text(CannedFetcher("word " * 1000), paper(), timeout_ms=1000, max_chars=500)
    assert len(enriched.content) == len("Paper title\n\n") + 500 + len("...")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fetcher",
    [
        CannedFetcher("too little text"),
        CannedFetcher(error=RuntimeError("connection reset")),
        CannedFetcher(delay_s=5.0),
    ],
)
async def test_with_full_text_falls_back_to_abstract(fetcher):
    original = paper()
    result = await paper_text.with_full_text(fetcher, original, timeout_ms=50, max_chars=8000)
    assert result is original


@pytest.mark.asyncio
async def test_download_papers_keeps_document_order():
    web = make_document("https://example.com/post", "body " * 40)
    first, second = paper(1), paper(2)

    documents = await paper_text.download_papers(
        CannedFetcher(), [first, web, second], [first, second], timeout_ms=1000, max_chars=8000
    )

    assert [doc.source_url for doc in documents] == [first.source_url, web.source_url, second.source_url]
    assert documents[1] is web
    assert all(documents[i].metadata.get("full_text") for i in (0, 2))
