# app/chat/stream/events.py
"""
Wire events of the chat stream.

The server emits zero or more `chunk` events followed by exactly one terminal
event (`done` or `error`). The same models are used by the framer to encode and
by the reader to decode.
"""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel


class ChunkEvent(BaseModel):
    type: Literal["chunk"] = "chunk"
    chunk: str


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str


StreamEvent = Union[ChunkEvent, DoneEvent, ErrorEvent]


def parse_payload(payload: Any) -> Optional[StreamEvent]:
    """
    Map a decoded `data:` payload to a stream event.

    Typed payloads dispatch on `type`; untyped payloads of the older wire
    format (`{chunk}`, `{done: true}`, `{error}`) map to the same events.
    Anything else (metadata, thinking, ...) yields None.
    """
    if not isinstance(payload, dict):
        return None

    kind = payload.get("type")
    if kind is not None:
        if kind == "chunk":
            return ChunkEvent(chunk=str(payload.get("chunk") or ""))
        if kind == "done":
            return DoneEvent()
        if kind == "error":
            return ErrorEvent(error=str(payload.get("error") or "Stream error occurred"))
        return None

    return _parse_untyped(payload)


def _parse_untyped(payload: Dict[str, Any]) -> Optional[StreamEvent]:
    if "error" in payload:
        return ErrorEvent(error=str(payload["error"]))
    if payload.get("done") is True:
        return DoneEvent()
    if "chunk" in payload:
        return ChunkEvent(chunk=str(payload["chunk"] or ""))
    return None
