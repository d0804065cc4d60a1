from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional

from app.chat.entity.chat import Conversation, FileAttachment, Message


class IncomingMessage(BaseModel):
    """A transcript message sent by the client; `text` is accepted for `content`."""
    model_config = ConfigDict(populate_by_name=True)

    role: Literal["system", "user", "assistant"]
    content: str = Field(default="", validation_alias=AliasChoices("content", "text"))
    files: List[FileAttachment] = Field(default_factory=list)

    @field_validator("content", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class ChatStreamRequest(BaseModel):
    messages: List[IncomingMessage]
    model: Optional[str] = None


class SaveMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("conversation_id", "conversationId")
    )
    role: Literal["system", "user", "assistant"]
    content: str = Field(default="", validation_alias=AliasChoices("content", "text"))
    files: List[FileAttachment] = Field(default_factory=list)


class EditMessageRequest(BaseModel):
    content: str = Field(validation_alias=AliasChoices("content", "newText", "text"))


class CreateConversationRequest(BaseModel):
    title: Optional[str] = None


class RenameConversationDTO(BaseModel):
    title: str = Field(
        ..., min_length=1, max_length=255,
        validation_alias=AliasChoices("title", "name"),
        description="New title for the conversation",
    )


class ConversationResponse(BaseModel):
    conversation_id: str
    title: str
    created_at: str
    updated_at: str

    @classmethod
    def from_entity(cls, conversation: Conversation) -> "ConversationResponse":
        return cls(
            conversation_id=conversation.id,
            title=conversation.title,
            created_at=conversation.created_at.isoformat(),
            updated_at=conversation.updated_at.isoformat(),
        )


class MessageResponse(BaseModel):
    message_id: str
    conversation_id: str
    role: str
    content: str
    files: List[dict] = Field(default_factory=list)
    is_edited: bool = False
    edit_history: List[dict] = Field(default_factory=list)
    created_at: str
    updated_at: Optional[str] = None

    @classmethod
    def from_entity(cls, message: Message) -> "MessageResponse":
        return cls(
            message_id=message.id,
            conversation_id=message.conversation_id,
            role=message.role,
            content=message.content,
            files=[f.model_dump(mode="json") for f in message.files],
            is_edited=message.is_edited,
            edit_history=[e.model_dump(mode="json") for e in message.edit_history],
            created_at=message.created_at.isoformat(),
            updated_at=message.updated_at.isoformat() if message.updated_at else None,
        )
