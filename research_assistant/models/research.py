from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Union


class Strategy(StrEnum):
    QUICK = "quick"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"


class ResearchStage(StrEnum):
    SEARCHING = "searching"
    DOWNLOADING = "downloading"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    COMPLETE = "complete"


STAGE_ORDER: dict[ResearchStage, int] = {
    ResearchStage.SEARCHING: 0,
    ResearchStage.DOWNLOADING: 1,
    ResearchStage.PROCESSING: 2,
    ResearchStage.ANALYZING: 3,
    ResearchStage.COMPLETE: 4,
}


@dataclass(frozen=True, slots=True)
class SourceDocument:
    content: str
    source_url: str
    title: str = ""
    domain: str = ""
    relevance_score: float = 0.0
    content_length: int = 0
    provider: str = "web"
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def with_score(self, score: float) -> "SourceDocument":
        return replace(self, relevance_score=score)

    def with_content(self, content: str) -> "SourceDocument":
        return replace(self, content=content, content_length=len(content))

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "sourceUrl": self.source_url,
            "title": self.title,
            "domain": self.domain,
            "relevanceScore": self.relevance_score,
            "contentLength": self.content_length,
            "provider": self.provider,
        }


@dataclass(slots=True)
class Finding:
    title: str
    content: str
    source: str = "Research data"
    relevance: str = "High"  # High | Medium | Low
    category: str = "General"

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "source": self.source,
            "relevance": self.relevance,
            "category": self.category,
        }


@dataclass(slots=True)
class Statistic:
    metric: str
    value: str
    context: str = "Statistical data"
    source: str = "Research data"

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "value": self.value,
            "context": self.context,
            "source": self.source,
        }


@dataclass(slots=True)
class Question:
    text: str


@dataclass(slots=True)
class CodeExample:
    title: str
    language: str
    code: str
    description: str = ""
    source: str = "Research data"

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "language": self.language,
            "code": self.code,
            "description": self.description,
            "source": self.source,
        }


# One tagged block recovered from free-text model output.
ParsedBlock = Union[Finding, Statistic, Question, CodeExample]


@dataclass(slots=True)
class Progress:
    current: int
    total: int


@dataclass(slots=True)
class ResearchStatus:
    stage: ResearchStage
    message: str
    progress: Progress

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "message": self.message,
            "progress": {"current": self.progress.current, "total": self.progress.total},
        }


@dataclass(slots=True)
class ResearchMetadata:
    sources_count: int = 0
    confidence: float = 0.0
    research_depth: str = "None"
    last_updated: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    search_queries: int = 0
    quality_score: float = 0.0
    strategy: str | None = None
    attempts: int = 0
    error: bool = False
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "sourcesCount": self.sources_count,
            "confidence": round(self.confidence, 4),
            "researchDepth": self.research_depth,
            "lastUpdated": self.last_updated,
            "searchQueries": self.search_queries,
            "qualityScore": round(self.quality_score, 4),
            "attempts": self.attempts,
        }
        if self.strategy:
            data["strategy"] = self.strategy
        if self.error:
            data["error"] = True
        if self.error_message:
            data["errorMessage"] = self.error_message
        return data


@dataclass(slots=True)
class ResearchResult:
    summary: str
    findings: list[Finding] = field(default_factory=list)
    statistics: list[Statistic] = field(default_factory=list)
    code_examples: list[CodeExample] = field(default_factory=list)
    suggested_questions: list[str] = field(default_factory=list)
    metadata: ResearchMetadata = field(default_factory=ResearchMetadata)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "findings": [f.to_dict() for f in self.findings],
            "statistics": [s.to_dict() for s in self.statistics],
            "codeExamples": [c.to_dict() for c in self.code_examples],
            "suggestedQuestions": list(self.suggested_questions),
            "metadata": self.metadata.to_dict(),
        }
