from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

from research_assistant.models.events import EventType, StreamEvent
from research_assistant.models.research import (
    STAGE_ORDER,
    Progress,
    ResearchResult,
    ResearchStage,
    ResearchStatus,
)
from research_assistant.services.logger import logger

StatusCallback = Callable[[ResearchStatus], None]

PIPELINE_STEPS = 4

STAGE_STEP: dict[ResearchStage, int] = {
    ResearchStage.SEARCHING: 1,
    ResearchStage.DOWNLOADING: 1,
    ResearchStage.PROCESSING: 2,
    ResearchStage.ANALYZING: 3,
    ResearchStage.COMPLETE: 4,
}


def status(update: ResearchStatus) -> StreamEvent:
    return StreamEvent(event=EventType.STATUS, data=update.to_dict())


def research_complete(result: ResearchResult) -> StreamEvent:
    return StreamEvent(event=EventType.RESEARCH, data=result.to_dict())


def error(message: str) -> StreamEvent:
    return StreamEvent(event=EventType.ERROR, data=message)


def encode_event(event: StreamEvent) -> bytes:
    return event.format().encode("utf-8")


class NdjsonDecoder:
    """Incremental decoder for the newline-delimited JSON status stream.

    Bytes may arrive split anywhere; a trailing partial line is buffered until
    the rest of it is fed.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._pending = b""

    def feed(self, chunk: bytes) -> list[dict[str, Any]]:
        data = self._pending + chunk
        try:
            text = data.decode("utf-8")
            self._pending = b""
        except UnicodeDecodeError as exc:
            # Multi-byte character cut at the chunk edge.
            text = data[: exc.start].decode("utf-8")
            self._pending = data[exc.start :]
        self._buffer += text

        messages: list[dict[str, Any]] = []
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            line = line.strip()
            if not line:
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"Dropping malformed stream line: {line[:120]}")
                continue
            if isinstance(payload, dict):
                messages.append(payload)
        return messages

    def flush(self) -> list[dict[str, Any]]:
        """Decode whatever remains once the stream has closed."""
        remaining = self._buffer.strip()
        self._buffer = ""
        if not remaining:
            return []
        try:
            payload = json.loads(remaining)
        except json.JSONDecodeError:
            return []
        return [payload] if isinstance(payload, dict) else []


class StatusEmitter:
    """Publishes stage transitions for one research call.

    Stages only move forward, progress never decreases, nothing is emitted after
    the complete stage, and nothing at all once `cancel` is set.
    """

    def __init__(
        self,
        callback: StatusCallback | None = None,
        *,
        cancel: asyncio.Event | None = None,
        total: int = PIPELINE_STEPS,
    ):
        self._callback = callback
        self._cancel = cancel
        self.total = total
        self._stage: ResearchStage | None = None
        self._current = 0
        self.history: list[ResearchStatus] = []

    @property
    def cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    @property
    def finished(self) -> bool:
        return self._stage is ResearchStage.COMPLETE

    def emit(self, stage: ResearchStage, message: str, current: int | None = None) -> ResearchStatus | None:
        if self.cancelled or self.finished:
            return None
        if self._stage is not None and STAGE_ORDER[stage] < STAGE_ORDER[self._stage]:
            logger.warning(f"Ignoring out-of-order status {stage.value} after {self._stage.value}")
            return None

        step = current if current is not None else STAGE_STEP[stage]
        step = min(max(step, self._current), self.total)
        update = ResearchStatus(stage=stage, message=message, progress=Progress(step, self.total))
        self._stage = stage
        self._current = step
        self.history.append(update)
        if self._callback is not None:
            try:
                self._callback(update)
            except Exception as e:
                # The consumer's failure must not abort the pipeline.
                logger.warning(f"Status callback raised: {e}")
        return update
