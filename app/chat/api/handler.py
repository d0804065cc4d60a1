from typing import AsyncIterator, Awaitable, Callable, Optional

from app.chat.api.dto import ChatStreamRequest
from app.chat.service.chat_service import ChatService
from app.chat.stream.framer import frame_fragments
from app.core.logger import get_logger

logger = get_logger("ChatHandler")


async def handle_chat_stream(
    body: ChatStreamRequest,
    user_id: str,
    chat_service: ChatService,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
) -> AsyncIterator[str]:
    """
    Open the model stream for one turn and return its SSE lines.

    Everything that can fail before the first byte (empty conversation,
    memory lookup) raises here so the caller answers with a JSON error
    instead of an event stream. Failures after that are framed as one
    `error` event.
    """
    fragments = await chat_service.stream_reply(user_id, body.messages, body.model)
    logger.debug(f"Relay opened for user_id={user_id} model={body.model or 'default'}")
    return frame_fragments(fragments, is_disconnected)
