"""Tests for the SSE framer"""

import json

import pytest

from app.chat.stream.events import ChunkEvent, DoneEvent, ErrorEvent
from app.chat.stream.framer import SSE_HEADERS, format_event, frame_fragments, public_error_message
from app.core.exceptions import AllModelsRateLimitedError, UpstreamError


async def fragments_of(*items, closed=None):
    try:
        for item in items:
            if isinstance(item, BaseException):
                raise item
            yield item
    finally:
        if closed is not None:
            closed.append(True)


async def frame(source, is_disconnected=None):
    return [line async for line in frame_fragments(source, is_disconnected)]


def payloads(lines):
    assert all(line.startswith("data: ") and line.endswith("\n\n") for line in lines)
    return [json.loads(line[len("data: "):]) for line in lines]


def test_format_event_wire_shape():
    assert format_event(DoneEvent()) == 'data: {"type":"done"}\n\n'
    assert format_event(ChunkEvent(chunk="Hi")) == 'data: {"type":"chunk","chunk":"Hi"}\n\n'
    assert format_event(ErrorEvent(error="nope")) == 'data: {"type":"error","error":"nope"}\n\n'


@pytest.mark.asyncio
async def test_chunks_then_single_done():
    lines = await frame(fragments_of("Hi", " there"))
    assert payloads(lines) == [
        {"type": "chunk", "chunk": "Hi"},
        {"type": "chunk", "chunk": " there"},
        {"type": "done"},
    ]


@pytest.mark.asyncio
async def test_blank_fragments_are_suppressed():
    lines = await frame(fragments_of("", "  ", "ok", "\n"))
    assert payloads(lines) == [{"type": "chunk", "chunk": "ok"}, {"type": "done"}]


@pytest.mark.asyncio
async def test_empty_stream_still_ends_with_done():
    assert payloads(await frame(fragments_of())) == [{"type": "done"}]


@pytest.mark.asyncio
async def test_failure_emits_one_error_and_no_done():
    error = AllModelsRateLimitedError(["a", "b"])
    events = payloads(await frame(fragments_of("Hi", error)))
    assert events[0] == {"type": "chunk", "chunk": "Hi"}
    assert events[1:] == [{"type": "error", "error": AllModelsRateLimitedError.public_message}]


@pytest.mark.asyncio
async def test_raw_error_text_is_not_exposed():
    events = payloads(await frame(fragments_of(RuntimeError("db password=hunter2 leaked"))))
    assert events == [{"type": "error", "error": "Stream error occurred"}]


def test_public_error_messages():
    assert "Rate limit" in public_error_message(Exception("429 quota exceeded"))
    assert public_error_message(Exception("Quota hit, retry in 7.5s")) == (
        "Rate limit exceeded. Please retry in 7.5 seconds."
    )
    assert public_error_message(UpstreamError("socket closed")) == (
        "The model is currently unavailable. Please try again."
    )


@pytest.mark.asyncio
async def test_disconnect_stops_quietly_and_closes_upstream():
    closed = []
    polls = iter([False, True])

    async def is_disconnected():
        return next(polls, True)

    lines = await frame(fragments_of("one", "two", "three", closed=closed), is_disconnected)
    assert payloads(lines) == [{"type": "chunk", "chunk": "one"}]
    assert closed == [True]


@pytest.mark.asyncio
async def test_disconnect_probe_failure_does_not_break_relay():
    async def broken_probe():
        raise RuntimeError("receive channel closed")

    events = payloads(await frame(fragments_of("a"), broken_probe))
    assert events == [{"type": "chunk", "chunk": "a"}, {"type": "done"}]


def test_sse_headers():
    assert SSE_HEADERS["Cache-Control"] == "no-cache, no-transform"
    assert SSE_HEADERS["Connection"] == "keep-alive"
    assert SSE_HEADERS["X-Accel-Buffering"] == "no"
