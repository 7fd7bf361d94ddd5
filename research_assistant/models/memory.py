from __future__ import annotations

from dataclasses import dataclass, field

from research_assistant.models.research import SourceDocument


@dataclass(slots=True)
class EmbeddedChunk:
    id: str
    document: SourceDocument
    vector: list[float]


@dataclass(slots=True)
class EmbeddingUpsertResult:
    inserted: int = 0
    deduplicated: int = 0
    failed_batches: int = 0
    skipped_ids: list[str] = field(default_factory=list)
