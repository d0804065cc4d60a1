# app/chat/stream/framer.py
import re
from typing import AsyncIterator, Awaitable, Callable, Optional

from app.chat.stream.events import ChunkEvent, DoneEvent, ErrorEvent, StreamEvent
from app.core.exceptions import (
    AllModelsRateLimitedError,
    RateLimitedError,
    UpstreamError,
)
from app.core.logger import get_logger

logger = get_logger("SSEFramer")

SSE_MEDIA_TYPE = "text/event-stream"

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # for Nginx
}

GENERIC_STREAM_ERROR = "Stream error occurred"


def format_event(event: StreamEvent) -> str:
    return f"data: {event.model_dump_json()}\n\n"


def public_error_message(error: BaseException) -> str:
    """User-safe description of a stream failure. Raw details are only logged."""
    if isinstance(error, AllModelsRateLimitedError):
        return AllModelsRateLimitedError.public_message
    if isinstance(error, RateLimitedError):
        return RateLimitedError.public_message

    error_str = str(error).lower()
    if "429" in error_str or "quota" in error_str or "rate limit" in error_str:
        retry_match = re.search(r"retry in ([\d.]+)s", error_str)
        if retry_match:
            return f"Rate limit exceeded. Please retry in {retry_match.group(1)} seconds."
        return RateLimitedError.public_message

    if "model" in error_str and ("not found" in error_str or "404" in error_str):
        return "Model not available. Please try a different model."

    if isinstance(error, UpstreamError):
        return "The model is currently unavailable. Please try again."

    return GENERIC_STREAM_ERROR


async def frame_fragments(
    fragments: AsyncIterator[str],
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
) -> AsyncIterator[str]:
    """
    Turn text fragments into SSE lines.

    Blank fragments are dropped. The stream ends with exactly one `done` or,
    when the upstream fails, exactly one `error`. A disconnected client ends
    the relay without a terminal event.
    """
    try:
        async for fragment in fragments:
            if await _client_gone(is_disconnected):
                logger.info("Client disconnected, stopping relay")
                return
            if not fragment or not fragment.strip():
                continue
            yield format_event(ChunkEvent(chunk=fragment))
        yield format_event(DoneEvent())
    except Exception as e:
        logger.error(f"Streaming error: {e}")
        yield format_event(ErrorEvent(error=public_error_message(e)))
    finally:
        aclose = getattr(fragments, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception as e:
                logger.debug(f"Ignoring error while closing fragment stream: {e}")


async def _client_gone(is_disconnected: Optional[Callable[[], Awaitable[bool]]]) -> bool:
    if is_disconnected is None:
        return False
    try:
        return await is_disconnected()
    except Exception as e:
        logger.debug(f"Disconnect probe failed: {e}")
        return False
