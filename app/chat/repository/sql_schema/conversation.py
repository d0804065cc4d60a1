from sqlalchemy import (
    Column, String, DateTime, Text, ForeignKey, JSON, Boolean
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from pkg.db_util.sql_alchemy.declarative_base import Base

# JSONB on Postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


# Conversation Table
class ConversationModel(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, index=True)
    owner_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False, default="New Chat")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)


# Message Table
class MessageModel(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, index=True)
    conversation_id = Column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    files = Column(JSONType, nullable=False, default=list)
    is_edited = Column(Boolean, nullable=False, default=False)
    # [{content, edited_at}] oldest first
    edit_history = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
