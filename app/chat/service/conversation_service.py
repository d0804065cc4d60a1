from typing import List, Optional, Sequence, Tuple

from app.chat.entity.chat import (
    Conversation,
    EditRecord,
    FileAttachment,
    Message,
    MessageRole,
    utcnow,
)
from app.chat.service.service import IChatRepository
from app.core.exceptions import NotFoundError, ValidationError
from app.core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TITLE = "New Chat"
TITLE_LENGTH = 50
TITLE_ELLIPSIS = "…"


def derive_title(content: str) -> str:
    """First 50 characters of the content, with an ellipsis when cut."""
    title = content[:TITLE_LENGTH]
    if len(content) > TITLE_LENGTH:
        title += TITLE_ELLIPSIS
    if not title.strip():
        return DEFAULT_TITLE
    return title


class ConversationManager:
    """
    Conversation and message persistence for one owner at a time.

    Every read and write is scoped by owner id; a conversation or message of
    another owner behaves as missing.
    """

    def __init__(self, repository: IChatRepository):
        self.repository = repository

    # ----------------------------
    # Conversations
    # ----------------------------
    async def create_conversation(self, owner_id: str, title: Optional[str] = None) -> Conversation:
        conversation = Conversation(owner_id=owner_id, title=(title or "").strip() or DEFAULT_TITLE)
        await self.repository.create_conversation(conversation)
        logger.info(f"Created conversation {conversation.id} for owner {owner_id}")
        return conversation

    async def get_conversation(self, owner_id: str, conversation_id: str) -> Conversation:
        conversation = await self.repository.get_conversation(owner_id, conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    async def list_conversations(self, owner_id: str) -> List[Conversation]:
        return await self.repository.list_conversations(owner_id)

    async def rename_conversation(self, owner_id: str, conversation_id: str, title: str) -> Conversation:
        if not title or not title.strip():
            raise ValidationError("Title must not be empty")
        conversation = await self.get_conversation(owner_id, conversation_id)
        conversation.title = title.strip()
        conversation.updated_at = utcnow()
        await self.repository.update_conversation(conversation)
        return conversation

    async def delete_conversation(self, owner_id: str, conversation_id: str) -> None:
        deleted = await self.repository.delete_conversation(owner_id, conversation_id)
        if not deleted:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        logger.info(f"Deleted conversation {conversation_id}")

    # ----------------------------
    # Messages
    # ----------------------------
    async def list_messages(self, owner_id: str, conversation_id: str) -> List[Message]:
        await self.get_conversation(owner_id, conversation_id)
        return await self.repository.list_messages(owner_id, conversation_id)

    async def persist_message(
        self,
        owner_id: str,
        role: str,
        content: str,
        conversation_id: Optional[str] = None,
        files: Sequence[FileAttachment] = (),
    ) -> Tuple[Message, Conversation]:
        """
        Store one message, creating the conversation when no id is given.

        The title comes from the first user message of the conversation.
        Returns the stored message and its (updated) conversation.
        """
        if not role or content is None or not content.strip():
            raise ValidationError("Missing required fields")

        is_user = role == MessageRole.USER.value
        if conversation_id:
            conversation = await self.get_conversation(owner_id, conversation_id)
            if is_user:
                user_messages = await self.repository.count_messages(
                    owner_id, conversation.id, role=MessageRole.USER.value
                )
                if user_messages == 0:
                    conversation.title = derive_title(content)
            conversation.updated_at = utcnow()
            await self.repository.update_conversation(conversation)
        else:
            conversation = Conversation(
                owner_id=owner_id,
                title=derive_title(content) if is_user else DEFAULT_TITLE,
            )
            await self.repository.create_conversation(conversation)
            logger.info(f"Created conversation {conversation.id} from first message")

        message = Message(
            conversation_id=conversation.id,
            owner_id=owner_id,
            role=role,
            content=content,
            files=list(files),
        )
        await self.repository.add_message(message)
        return message, conversation

    async def edit_message(self, owner_id: str, message_id: str, content: str) -> Message:
        """Replace the content of a message, keeping the previous one in its history."""
        if content is None or not content.strip():
            raise ValidationError("Missing required fields")
        message = await self.repository.get_message(owner_id, message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")

        now = utcnow()
        message.edit_history.append(EditRecord(content=message.content, edited_at=now))
        message.content = content
        message.is_edited = True
        message.updated_at = now
        await self.repository.update_message(message)
        return message

    async def delete_message(self, owner_id: str, message_id: str) -> None:
        deleted = await self.repository.delete_message(owner_id, message_id)
        if not deleted:
            raise NotFoundError(f"Message {message_id} not found")
