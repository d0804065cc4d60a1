# app/chat/entity/chat.py
"""
Domain models for conversations and their messages.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class FileAttachment(BaseModel):
    """A file referenced by a message, hosted at `url`."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    url: str
    media_type: str = Field(
        default="application/octet-stream",
        validation_alias=AliasChoices("media_type", "mediaType", "type"),
    )


class EditRecord(BaseModel):
    content: str
    edited_at: datetime = Field(default_factory=utcnow)


class Message(BaseModel):
    id: str = Field(default_factory=new_id)
    conversation_id: str
    owner_id: str
    role: Literal["user", "assistant", "system"]
    content: str
    files: List[FileAttachment] = Field(default_factory=list)
    is_edited: bool = False
    edit_history: List[EditRecord] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class Conversation(BaseModel):
    id: str = Field(default_factory=new_id)
    owner_id: str
    title: str = "New Chat"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
