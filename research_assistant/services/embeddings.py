from __future__ import annotations

import asyncio
import hashlib
import math
import re
from typing import Any, Protocol

from research_assistant.config import ResearchConfig
from research_assistant.services.logger import logger

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class Embedder(Protocol):
    async def embed_texts(self, texts: list[str]) -> list[list[float]]: ...


class HashingEmbedder:
    """Feature-hashed bag-of-words vectors; no model download, deterministic."""

    def __init__(self, dim: int = 384):
        self.dim = dim

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [hashed_embedding(text, self.dim) for text in texts]

    async def embed_text(self, text: str) -> list[float]:
        return hashed_embedding(text, self.dim)


class SentenceTransformerEmbedder:
    """Local sentence-transformers model, loaded lazily on first use."""

    def __init__(self, model_name: str, batch_size: int = 16):
        self.model_name = model_name
        self.batch_size = batch_size
        self._model: Any | None = None
        self._lock = asyncio.Lock()

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        async with self._lock:
            if self._model is None:
                self._model = await asyncio.to_thread(self._load_model)
        return await asyncio.to_thread(self._embed_sync, texts)

    async def embed_text(self, text: str) -> list[float]:
        vectors = await self.embed_texts([text])
        return vectors[0]

    def _load_model(self) -> Any:
        from sentence_transformers import SentenceTransformer

        logger.info(f"Loading embedding model {self.model_name}")
        return SentenceTransformer(self.model_name)

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        vectors = self._model.encode(
            texts,
            batch_size=self.batch_size,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return [list(map(float, row)) for row in vectors]


def build_embedder(config: ResearchConfig) -> Embedder:
    if config.embedding_backend == "sentence_transformers":
        return SentenceTransformerEmbedder(config.embed_model, batch_size=config.embed_batch_size)
    if config.embedding_backend != "hashing":
        logger.warning(f"Unknown embedding backend '{config.embedding_backend}', using hashing")
    return HashingEmbedder()


def hashed_embedding(text: str, dim: int = 384) -> list[float]:
    values = [0.0] * dim
    for token in _TOKEN_RE.findall((text or "").lower()):
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        index = int.from_bytes(digest[:4], "big") % dim
        sign = 1.0 if digest[4] & 1 else -1.0
        values[index] += sign
    norm = math.sqrt(sum(v * v for v in values))
    if norm <= 0:
        return values
    return [v / norm for v in values]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a <= 0 or norm_b <= 0:
        return 0.0
    return dot / (norm_a * norm_b)
