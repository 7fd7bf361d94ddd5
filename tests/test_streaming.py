from __future__ import annotations

import asyncio
import json

from research_assistant.models.research import ResearchResult, ResearchStage
from research_assistant.services import streaming
from research_assistant.services.streaming import NdjsonDecoder, StatusEmitter


def test_decoder_reassembles_lines_split_across_chunks():
    decoder = NdjsonDecoder()
    payload = b'{"status": {"stage": "searching"}}\n{"research": {"summary": "ok"}}\n'

    first = decoder.feed(payload[:10])
    second = decoder.feed(payload[10:40])
    third = decoder.feed(payload[40:])

    assert first == []
    assert second == [{"status": {"stage": "searching"}}]
    assert third == [{"research": {"summary": "ok"}}]


def test_decoder_handles_multibyte_character_cut_at_chunk_edge():
    decoder = NdjsonDecoder()
    line = json.dumps({"error": "café ☕"}, ensure_ascii=False).encode("utf-8") + b"\n"
    cut = line.index("☕".encode("utf-8")) + 1

    assert decoder.feed(line[:cut]) == []
    assert decoder.feed(line[cut:]) == [{"error": "café ☕"}]


def test_decoder_skips_malformed_lines_and_flushes_tail():
    decoder = NdjsonDecoder()
    messages = decoder.feed(b'not json\n{"status": {}}\n{"research": {}}')

    assert messages == [{"status": {}}]
    assert decoder.flush() == [{"research": {}}]
    assert decoder.flush() == []


def test_encode_event_is_one_json_line():
    encoded = streaming.encode_event(streaming.research_complete(ResearchResult(summary="done")))
    assert encoded.endswith(b"\n")
    assert encoded.count(b"\n") == 1
    assert json.loads(encoded)["research"]["summary"] == "done"
    assert streaming.error("boom").is_terminal


def test_emitter_progress_is_monotonic_and_stops_after_complete():
    received = []
    emitter = StatusEmitter(received.append)

    emitter.emit(ResearchStage.SEARCHING, "Searching")
    emitter.emit(ResearchStage.PROCESSING, "Processing")
    assert emitter.emit(ResearchStage.SEARCHING, "Back again") is None
    emitter.emit(ResearchStage.ANALYZING, "Analyzing")
    emitter.emit(ResearchStage.COMPLETE, "Done")
    assert emitter.emit(ResearchStage.ANALYZING, "Late") is None

    assert [s.stage for s in received] == [
        ResearchStage.SEARCHING,
        ResearchStage.PROCESSING,
        ResearchStage.ANALYZING,
        ResearchStage.COMPLETE,
    ]
    currents = [s.progress.current for s in received]
    assert currents == sorted(currents)
    assert received[-1].progress.current == received[-1].progress.total == 4


def test_emitter_allows_repeated_searching_status_for_retries():
    emitter = StatusEmitter()
    emitter.emit(ResearchStage.SEARCHING, "Searching")
    retry = emitter.emit(ResearchStage.SEARCHING, "No sources found, retrying (2/2)...")
    assert retry is not None
    assert len(emitter.history) == 2


def test_emitter_is_silent_once_cancelled():
    cancel = asyncio.Event()
    received = []
    emitter = StatusEmitter(received.append, cancel=cancel)

    emitter.emit(ResearchStage.SEARCHING, "Searching")
    cancel.set()
    emitter.emit(ResearchStage.PROCESSING, "Processing")

    assert len(received) == 1
    assert emitter.cancelled


def test_emitter_survives_a_failing_callback():
    def explode(_update):
        raise RuntimeError("consumer went away")

    emitter = StatusEmitter(explode)
    assert emitter.emit(ResearchStage.SEARCHING, "Searching") is not None
    assert emitter.emit(ResearchStage.COMPLETE, "Done") is not None
