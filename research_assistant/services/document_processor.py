"""Quality filtering, chunking, embedding and re-ranking of searched documents."""
from __future__ import annotations

import asyncio
import re
from dataclasses import replace
from typing import Awaitable, Callable, Sequence

from langchain_text_splitters import RecursiveCharacterTextSplitter

from research_assistant.models.memory import EmbeddingUpsertResult
from research_assistant.models.research import SourceDocument
from research_assistant.services.embedding_store import EmbeddingStore, chunk_id
from research_assistant.services.logger import logger
from research_assistant.tools import web_utils

MIN_CONTENT_LENGTH = 100
MAX_CONTENT_LENGTH = 10000
MAX_SPECIAL_CHAR_RATIO = 0.3
DEFAULT_OVERLAP_RATIO = 0.1

_SPECIAL_CHAR_RE = re.compile(r"[^\w\s]")

Sleep = Callable[[float], Awaitable[None]]


def _is_authoritative(doc: SourceDocument) -> bool:
    return web_utils.is_authoritative_domain(doc.domain or web_utils.extract_domain(doc.source_url))


def special_char_ratio(text: str) -> float:
    if not text:
        return 0.0
    return len(_SPECIAL_CHAR_RE.findall(text)) / len(text)


def filter_quality(documents: Sequence[SourceDocument]) -> list[SourceDocument]:
    kept: list[SourceDocument] = []
    for doc in documents:
        length = len(doc.content)
        if length < MIN_CONTENT_LENGTH or length > MAX_CONTENT_LENGTH:
            continue
        if special_char_ratio(doc.content) > MAX_SPECIAL_CHAR_RATIO:
            continue
        kept.append(doc)
    return kept


def term_frequency_score(doc: SourceDocument, query: str) -> float:
    content = doc.content.lower()
    score = float(sum(len(re.findall(re.escape(term), content)) for term in query.lower().split()))
    if len(doc.content) < 200:
        score *= 0.5
    if _is_authoritative(doc):
        score *= 1.5
    return score


def rank(query: str, documents: Sequence[SourceDocument], k: int) -> list[SourceDocument]:
    """Top `k` documents by query term frequency, with length and authority weighting."""
    scored = [(term_frequency_score(doc, query), index, doc) for index, doc in enumerate(documents)]
    scored.sort(key=lambda item: (-item[0], item[1]))
    return [doc.with_score(score) for score, _, doc in scored[: max(int(k), 0)]]


def chunk(
    documents: Sequence[SourceDocument],
    chunk_size: int,
    overlap: int | None = None,
) -> list[SourceDocument]:
    """Split on paragraph, line, sentence then word boundaries.

    Each chunk keeps the provenance of the document it came from.
    """
    size = max(int(chunk_size), 1)
    if overlap is None:
        overlap = int(size * DEFAULT_OVERLAP_RATIO)
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=size,
        chunk_overlap=min(max(int(overlap), 0), size - 1),
        length_function=len,
        separators=["\n\n", "\n", ". ", " ", ""],
    )
    chunks: list[SourceDocument] = []
    for doc in documents:
        pieces = splitter.split_text(doc.content)
        for position, piece in enumerate(pieces):
            piece = piece.strip()
            if not piece:
                continue
            part = doc.with_content(piece)
            chunks.append(replace(part, metadata={**doc.metadata, "chunk": position}))
    return chunks


async def embed(
    store: EmbeddingStore,
    chunks: Sequence[SourceDocument],
    *,
    batch_size: int = 16,
    retry_delay_ms: int = 250,
    sleep: Sleep = asyncio.sleep,
) -> EmbeddingUpsertResult:
    """Insert `chunks` in batches; a failing batch is retried once, then skipped."""
    result = EmbeddingUpsertResult()
    size = max(int(batch_size), 1)
    for start in range(0, len(chunks), size):
        batch = list(chunks[start : start + size])
        for attempt in (1, 2):
            try:
                upsert = await store.add_documents(batch)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt == 1:
                    logger.warning(f"Embedding batch at {start} failed, retrying: {e}")
                    await sleep(retry_delay_ms / 1000)
                    continue
                logger.warning(f"Embedding batch at {start} failed twice, skipping {len(batch)} chunks: {e}")
                result.failed_batches += 1
                result.skipped_ids.extend(chunk_id(doc) for doc in batch)
                break
            result.inserted += upsert.inserted
            result.deduplicated += upsert.deduplicated
            break
    return result


async def retrieve(store: EmbeddingStore, query: str, k: int) -> list[SourceDocument]:
    """Over-fetch `2k` nearest chunks, then re-rank them down to `k`."""
    candidates = await store.similarity_search(query, max(int(k), 1) * 2)
    return rank(query, candidates, k)


def confidence(documents: Sequence[SourceDocument], findings_count: int) -> float:
    score = 0.5
    score += min(len(documents) * 0.05, 0.3)
    score += sum(1 for doc in documents if _is_authoritative(doc)) * 0.1
    score += min(max(findings_count, 0) * 0.05, 0.2)
    return min(score, 1.0)


def quality_score(documents: Sequence[SourceDocument]) -> float:
    if not documents:
        return 0.0
    avg_length = sum(len(doc.content) for doc in documents) / len(documents)
    authoritative = sum(1 for doc in documents if _is_authoritative(doc))
    score = 0.5
    score += min(avg_length / 2000, 0.3)
    score += (authoritative / len(documents)) * 0.2
    return min(score, 1.0)
