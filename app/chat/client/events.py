"""
Notification bus shared by the client components.

Replaces page-wide broadcast events: the conversation list and the transcript
subscribe explicitly and receive payloads through `publish`.
"""

import inspect
from collections import defaultdict
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from app.core.logger import get_logger

logger = get_logger("ChatEventBus")

Handler = Callable[[Optional[Any]], Union[None, Awaitable[None]]]


class ChatEvent(str, Enum):
    NEW_CHAT = "new-chat"
    CONVERSATION_SELECTED = "conversation-select"
    HISTORY_CHANGED = "refresh-history"


class ChatEventBus:
    def __init__(self):
        self._handlers: Dict[ChatEvent, List[Handler]] = defaultdict(list)

    def subscribe(self, event: ChatEvent, handler: Handler) -> Callable[[], None]:
        """Register `handler`; the returned callable unsubscribes it."""
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    async def publish(self, event: ChatEvent, payload: Optional[Any] = None) -> None:
        """Call every handler in subscription order. A failing handler is logged and skipped."""
        for handler in list(self._handlers[event]):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Handler for {event.value} failed: {e}")
