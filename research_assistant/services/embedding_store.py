from __future__ import annotations

import hashlib
from typing import Callable, Protocol, Sequence

from research_assistant.config import ResearchConfig
from research_assistant.models.memory import EmbeddedChunk, EmbeddingUpsertResult
from research_assistant.models.research import SourceDocument
from research_assistant.services.embeddings import Embedder, build_embedder, cosine_similarity


class EmbeddingStore(Protocol):
    async def add_documents(self, documents: Sequence[SourceDocument]) -> EmbeddingUpsertResult: ...

    async def similarity_search(self, query: str, k: int) -> list[SourceDocument]: ...


EmbeddingStoreFactory = Callable[[], EmbeddingStore]


def chunk_id(doc: SourceDocument) -> str:
    raw = f"{doc.source_url}\n{doc.content}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()[:24]


class InMemoryEmbeddingStore:
    """Append-only vector store scoped to a single research call.

    Inserting a chunk that is already present is a no-op, so a retried batch
    cannot duplicate or overwrite what an earlier batch accepted.
    """

    def __init__(self, embedder: Embedder):
        self._embedder = embedder
        self._chunks: dict[str, EmbeddedChunk] = {}

    def __len__(self) -> int:
        return len(self._chunks)

    async def add_documents(self, documents: Sequence[SourceDocument]) -> EmbeddingUpsertResult:
        if not documents:
            return EmbeddingUpsertResult()
        vectors = await self._embedder.embed_texts([doc.content for doc in documents])
        if len(vectors) != len(documents):
            raise ValueError(f"Embedder returned {len(vectors)} vectors for {len(documents)} documents")

        inserted = 0
        deduplicated = 0
        for doc, vector in zip(documents, vectors):
            key = chunk_id(doc)
            if key in self._chunks:
                deduplicated += 1
                continue
            self._chunks[key] = EmbeddedChunk(id=key, document=doc, vector=vector)
            inserted += 1
        return EmbeddingUpsertResult(inserted=inserted, deduplicated=deduplicated)

    async def similarity_search(self, query: str, k: int) -> list[SourceDocument]:
        if not self._chunks:
            return []
        vectors = await self._embedder.embed_texts([query])
        vector = vectors[0]
        scored = [
            (cosine_similarity(vector, chunk.vector), chunk.id, chunk.document)
            for chunk in self._chunks.values()
        ]
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [doc for _, _, doc in scored[: max(int(k), 1)]]


def in_memory_store_factory(config: ResearchConfig) -> EmbeddingStoreFactory:
    """Factory yielding a fresh store per call, sharing one embedder."""
    embedder = build_embedder(config)

    def factory() -> EmbeddingStore:
        return InMemoryEmbeddingStore(embedder)

    return factory
