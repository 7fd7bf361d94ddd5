from __future__ import annotations

from pydantic import BaseModel, Field

from research_assistant.models.research import Strategy


class ResearchRequest(BaseModel):
    query: str = Field(max_length=2000)
    strategy: Strategy | None = None
