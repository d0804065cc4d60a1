# app/chat/stream/reader.py
import codecs
import json
from typing import AsyncIterable, AsyncIterator, List, Optional

from app.chat.stream.events import StreamEvent, parse_payload
from app.core.exceptions import StreamProtocolError
from app.core.logger import get_logger

logger = get_logger("SSEReader")

DATA_PREFIX = "data: "


def parse_line(line: str) -> Optional[StreamEvent]:
    """Decode one SSE line; non-data and empty lines yield None."""
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):].strip()
    if not data:
        return None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise StreamProtocolError(f"Malformed stream event: {data[:100]}") from e

    event = parse_payload(payload)
    if event is None:
        logger.debug(f"Skipping non-content stream payload: {data[:100]}")
    return event


class LineBuffer:
    """Incremental UTF-8 decoder that hands back complete lines only."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._pending = ""

    def feed(self, data: bytes) -> List[str]:
        self._pending += self._decoder.decode(data)
        *lines, self._pending = self._pending.split("\n")
        return lines

    def close(self) -> List[str]:
        self._pending += self._decoder.decode(b"", final=True)
        rest, self._pending = self._pending, ""
        return [rest] if rest else []


async def read_events(byte_stream: AsyncIterable[bytes]) -> AsyncIterator[StreamEvent]:
    """
    Decode a chat SSE byte stream into stream events.

    Reads until the byte stream completes. A `data:` line that is not valid
    JSON raises StreamProtocolError.
    """
    buffer = LineBuffer()
    async for data in byte_stream:
        for line in buffer.feed(data):
            event = parse_line(line)
            if event is not None:
                yield event
    for line in buffer.close():
        event = parse_line(line)
        if event is not None:
            yield event
