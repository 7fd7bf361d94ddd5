from __future__ import annotations

from contextlib import aclosing
from typing import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from research_assistant.agents.orchestrator import ResearchOrchestrator
from research_assistant.api.deps import get_orchestrator
from research_assistant.models.schemas import ResearchRequest
from research_assistant.services import streaming
from research_assistant.services.logger import log_event

router = APIRouter(prefix="/api/research", tags=["research"])

NDJSON_MEDIA_TYPE = "application/x-ndjson"


@router.post("")
async def run_research(
    request: ResearchRequest,
    orchestrator: ResearchOrchestrator = Depends(get_orchestrator),
):
    """Stream status lines, then the result, as newline-delimited JSON."""

    async def event_lines() -> AsyncIterator[bytes]:
        try:
            async with aclosing(orchestrator.stream(request.query, request.strategy)) as events:
                async for event in events:
                    yield streaming.encode_event(event)
        except Exception as e:
            log_event(
                event_type="stream_error",
                message="Unhandled error in research stream",
                level="WARNING",
                error=str(e),
            )
            yield streaming.encode_event(streaming.error("Research stream failed unexpectedly."))

    return StreamingResponse(event_lines(), media_type=NDJSON_MEDIA_TYPE)
