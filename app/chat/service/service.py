from abc import ABC, abstractmethod
from typing import List, Optional

from app.chat.entity.chat import Conversation, Message


class IChatRepository(ABC):
    @abstractmethod
    async def create_conversation(self, conversation: Conversation) -> Conversation:
        pass

    @abstractmethod
    async def get_conversation(self, owner_id: str, conversation_id: str) -> Optional[Conversation]:
        pass

    @abstractmethod
    async def list_conversations(self, owner_id: str) -> List[Conversation]:
        """Conversations of the owner, most recently updated first."""
        pass

    @abstractmethod
    async def update_conversation(self, conversation: Conversation) -> None:
        pass

    @abstractmethod
    async def delete_conversation(self, owner_id: str, conversation_id: str) -> bool:
        """Delete the conversation and all of its messages."""
        pass

    @abstractmethod
    async def add_message(self, message: Message) -> Message:
        pass

    @abstractmethod
    async def list_messages(self, owner_id: str, conversation_id: str) -> List[Message]:
        """Messages of the conversation, oldest first."""
        pass

    @abstractmethod
    async def count_messages(self, owner_id: str, conversation_id: str, role: Optional[str] = None) -> int:
        pass

    @abstractmethod
    async def get_message(self, owner_id: str, message_id: str) -> Optional[Message]:
        pass

    @abstractmethod
    async def update_message(self, message: Message) -> None:
        pass

    @abstractmethod
    async def delete_message(self, owner_id: str, message_id: str) -> bool:
        pass
