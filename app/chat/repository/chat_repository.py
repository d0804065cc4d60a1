# app/chat/repository/chat_repository.py

from typing import Optional, List
from sqlalchemy.future import select
from sqlalchemy import delete, func

from app.chat.entity.chat import Conversation, EditRecord, FileAttachment, Message
from app.chat.repository.sql_schema.conversation import ConversationModel, MessageModel
from app.chat.service.service import IChatRepository
from app.core.logger import get_logger
from pkg.db_util.postgres_conn import PostgresConnection

logger = get_logger(__name__)


def _to_conversation(row: ConversationModel) -> Conversation:
    return Conversation(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_message(row: MessageModel) -> Message:
    return Message(
        id=row.id,
        conversation_id=row.conversation_id,
        owner_id=row.owner_id,
        role=row.role,
        content=row.content,
        files=[FileAttachment.model_validate(f) for f in (row.files or [])],
        is_edited=row.is_edited,
        edit_history=[EditRecord.model_validate(e) for e in (row.edit_history or [])],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ChatRepository(IChatRepository):
    """Handles all database interactions for chat conversations and messages."""

    def __init__(self, postgres: PostgresConnection):
        self.postgres = postgres
        self.logger = logger

    # ────────────────────────────────────────────────
    # Conversation CRUD
    # ────────────────────────────────────────────────

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        async with self.postgres.get_session() as session:
            session.add(ConversationModel(
                id=conversation.id,
                owner_id=conversation.owner_id,
                title=conversation.title,
                created_at=conversation.created_at,
                updated_at=conversation.updated_at,
            ))
        self.logger.info(f"Conversation saved: {conversation.id}")
        return conversation

    async def get_conversation(self, owner_id: str, conversation_id: str) -> Optional[Conversation]:
        async with self.postgres.get_session() as session:
            result = await session.execute(
                select(ConversationModel).where(
                    ConversationModel.id == conversation_id,
                    ConversationModel.owner_id == owner_id,
                )
            )
            row = result.scalar_one_or_none()
            return _to_conversation(row) if row else None

    async def list_conversations(self, owner_id: str) -> List[Conversation]:
        async with self.postgres.get_session() as session:
            result = await session.execute(
                select(ConversationModel)
                .where(ConversationModel.owner_id == owner_id)
                .order_by(ConversationModel.updated_at.desc())
            )
            return [_to_conversation(c) for c in result.scalars().all()]

    async def update_conversation(self, conversation: Conversation) -> None:
        async with self.postgres.get_session() as session:
            row = await session.get(ConversationModel, conversation.id)
            if row is None or row.owner_id != conversation.owner_id:
                return
            row.title = conversation.title
            row.updated_at = conversation.updated_at

    async def delete_conversation(self, owner_id: str, conversation_id: str) -> bool:
        async with self.postgres.get_session() as session:
            await session.execute(
                delete(MessageModel).where(
                    MessageModel.conversation_id == conversation_id,
                    MessageModel.owner_id == owner_id,
                )
            )
            result = await session.execute(
                delete(ConversationModel).where(
                    ConversationModel.id == conversation_id,
                    ConversationModel.owner_id == owner_id,
                )
            )
        deleted = result.rowcount > 0
        if deleted:
            self.logger.info(f"Deleted conversation {conversation_id}")
        return deleted

    # ────────────────────────────────────────────────
    # Message CRUD
    # ────────────────────────────────────────────────

    async def add_message(self, message: Message) -> Message:
        async with self.postgres.get_session() as session:
            session.add(MessageModel(
                id=message.id,
                conversation_id=message.conversation_id,
                owner_id=message.owner_id,
                role=message.role,
                content=message.content,
                files=[f.model_dump(mode="json") for f in message.files],
                is_edited=message.is_edited,
                edit_history=[e.model_dump(mode="json") for e in message.edit_history],
                created_at=message.created_at,
                updated_at=message.updated_at,
            ))
        self.logger.debug(f"Message saved for conversation {message.conversation_id}")
        return message

    async def list_messages(self, owner_id: str, conversation_id: str) -> List[Message]:
        async with self.postgres.get_session() as session:
            result = await session.execute(
                select(MessageModel)
                .where(
                    MessageModel.conversation_id == conversation_id,
                    MessageModel.owner_id == owner_id,
                )
                .order_by(MessageModel.created_at.asc())
            )
            return [_to_message(m) for m in result.scalars().all()]

    async def count_messages(self, owner_id: str, conversation_id: str, role: Optional[str] = None) -> int:
        query = select(func.count(MessageModel.id)).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.owner_id == owner_id,
        )
        if role is not None:
            query = query.where(MessageModel.role == role)
        async with self.postgres.get_session() as session:
            result = await session.execute(query)
            return int(result.scalar_one())

    async def get_message(self, owner_id: str, message_id: str) -> Optional[Message]:
        async with self.postgres.get_session() as session:
            result = await session.execute(
                select(MessageModel).where(
                    MessageModel.id == message_id,
                    MessageModel.owner_id == owner_id,
                )
            )
            row = result.scalar_one_or_none()
            return _to_message(row) if row else None

    async def update_message(self, message: Message) -> None:
        async with self.postgres.get_session() as session:
            row = await session.get(MessageModel, message.id)
            if row is None or row.owner_id != message.owner_id:
                return
            row.content = message.content
            row.is_edited = message.is_edited
            row.edit_history = [e.model_dump(mode="json") for e in message.edit_history]
            row.updated_at = message.updated_at

    async def delete_message(self, owner_id: str, message_id: str) -> bool:
        async with self.postgres.get_session() as session:
            result = await session.execute(
                delete(MessageModel).where(
                    MessageModel.id == message_id,
                    MessageModel.owner_id == owner_id,
                )
            )
        return result.rowcount > 0
