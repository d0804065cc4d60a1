from typing import Any, Dict, List, Optional

from app.chat.client.api_client import ChatApiClient
from app.chat.client.events import ChatEvent, ChatEventBus
from app.core.logger import get_logger

logger = get_logger("ConversationHistory")


class ConversationHistory:
    """
    Conversation list of the sidebar.

    Reloads itself whenever the history changes and announces selection and
    new-chat requests to the transcript through the bus.
    """

    def __init__(self, api: ChatApiClient, bus: ChatEventBus):
        self.api = api
        self.bus = bus
        self.conversations: List[Dict[str, Any]] = []
        self.selected_id: Optional[str] = None
        self._unsubscribe = bus.subscribe(ChatEvent.HISTORY_CHANGED, self._on_history_changed)

    async def refresh(self) -> List[Dict[str, Any]]:
        self.conversations = await self.api.list_conversations()
        return self.conversations

    async def select(self, conversation_id: str) -> None:
        self.selected_id = conversation_id
        await self.bus.publish(ChatEvent.CONVERSATION_SELECTED, {"conversation_id": conversation_id})

    async def new_chat(self) -> None:
        self.selected_id = None
        await self.bus.publish(ChatEvent.NEW_CHAT)

    async def delete(self, conversation_id: str) -> None:
        await self.api.delete_conversation(conversation_id)
        if conversation_id == self.selected_id:
            await self.new_chat()
        await self.bus.publish(ChatEvent.HISTORY_CHANGED, {"conversation_id": conversation_id})

    async def _on_history_changed(self, payload: Optional[Any] = None) -> None:
        await self.refresh()

    def close(self) -> None:
        self._unsubscribe()
