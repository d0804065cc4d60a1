from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from typing import Optional

from app.auth.api.dependencies import get_current_user
from app.auth.api.dto import BaseResponse
from app.chat.api.dto import (
    ChatStreamRequest,
    ConversationResponse,
    CreateConversationRequest,
    EditMessageRequest,
    MessageResponse,
    RenameConversationDTO,
    SaveMessageRequest,
)
from app.chat.api.handler import handle_chat_stream
from app.chat.service.chat_service import ChatService
from app.chat.service.conversation_service import ConversationManager
from app.chat.stream.framer import SSE_HEADERS, SSE_MEDIA_TYPE
from app.core.exceptions import ChatAppError
from app.core.logger import get_logger

chat_router = APIRouter(prefix="/chat", tags=["Chat"])
logger = get_logger("ChatRouter")


def get_conversation_service(request: Request) -> Optional[ConversationManager]:
    """Dependency to get conversation service from app.state."""
    return getattr(request.app.state, "conversation_service", None)


def get_chat_service(request: Request) -> Optional[ChatService]:
    """Dependency to get chat service from app.state."""
    return getattr(request.app.state, "chat_service", None)


def _require(service, name: str):
    if not service:
        raise HTTPException(status_code=503, detail=f"{name} not available")
    return service


@chat_router.post("/stream")
async def chat_stream_api(
    body: ChatStreamRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    chat_service: Optional[ChatService] = Depends(get_chat_service),
):
    """Streaming chat endpoint (Server-Sent Events)."""
    chat_service = _require(chat_service, "Chat service")
    events = await handle_chat_stream(
        body, current_user["user_id"], chat_service, is_disconnected=request.is_disconnected
    )
    return StreamingResponse(events, media_type=SSE_MEDIA_TYPE, headers=SSE_HEADERS)


# ----------------------------
# Conversations
# ----------------------------

@chat_router.get("/conversations", response_model=BaseResponse)
async def list_conversations(
    current_user: dict = Depends(get_current_user),
    conversation_service: Optional[ConversationManager] = Depends(get_conversation_service),
):
    """Conversations of the authenticated user, most recently updated first."""
    conversation_service = _require(conversation_service, "Conversation service")
    try:
        items = await conversation_service.list_conversations(current_user["user_id"])
        return BaseResponse(
            status=True,
            message="Conversations fetched successfully",
            data={"conversations": [ConversationResponse.from_entity(c).model_dump() for c in items]},
        )
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Error listing conversations for user_id={current_user['user_id']}: {e}")
        raise HTTPException(status_code=500, detail="Failed to list conversations")


@chat_router.post("/conversations", response_model=BaseResponse)
async def create_conversation(
    body: CreateConversationRequest,
    current_user: dict = Depends(get_current_user),
    conversation_service: Optional[ConversationManager] = Depends(get_conversation_service),
):
    conversation_service = _require(conversation_service, "Conversation service")
    try:
        conversation = await conversation_service.create_conversation(current_user["user_id"], body.title)
        return BaseResponse(
            status=True,
            message="Conversation created successfully",
            data=ConversationResponse.from_entity(conversation).model_dump(),
        )
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Error creating conversation: {e}")
        raise HTTPException(status_code=500, detail="Failed to create conversation")


@chat_router.patch("/conversations/{conversation_id}", response_model=BaseResponse)
async def rename_conversation(
    conversation_id: str,
    rename_data: RenameConversationDTO,
    current_user: dict = Depends(get_current_user),
    conversation_service: Optional[ConversationManager] = Depends(get_conversation_service),
):
    conversation_service = _require(conversation_service, "Conversation service")
    try:
        conversation = await conversation_service.rename_conversation(
            current_user["user_id"], conversation_id, rename_data.title
        )
        logger.info(f"Renamed conversation_id={conversation_id} to '{conversation.title}'")
        return BaseResponse(
            status=True,
            message="Conversation renamed successfully",
            data=ConversationResponse.from_entity(conversation).model_dump(),
        )
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Error renaming conversation {conversation_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to rename conversation")


@chat_router.delete("/conversations/{conversation_id}", response_model=BaseResponse)
async def delete_conversation(
    conversation_id: str,
    current_user: dict = Depends(get_current_user),
    conversation_service: Optional[ConversationManager] = Depends(get_conversation_service),
):
    """Delete a conversation and all of its messages."""
    conversation_service = _require(conversation_service, "Conversation service")
    try:
        await conversation_service.delete_conversation(current_user["user_id"], conversation_id)
        return BaseResponse(
            status=True,
            message="Conversation deleted successfully",
            data={"conversation_id": conversation_id},
        )
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Error deleting conversation {conversation_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete conversation")


@chat_router.get("/conversations/{conversation_id}/messages", response_model=BaseResponse)
async def list_messages(
    conversation_id: str,
    current_user: dict = Depends(get_current_user),
    conversation_service: Optional[ConversationManager] = Depends(get_conversation_service),
):
    """Messages of a conversation, oldest first."""
    conversation_service = _require(conversation_service, "Conversation service")
    try:
        messages = await conversation_service.list_messages(current_user["user_id"], conversation_id)
        return BaseResponse(
            status=True,
            message="Messages fetched successfully",
            data={
                "conversation_id": conversation_id,
                "messages": [MessageResponse.from_entity(m).model_dump() for m in messages],
            },
        )
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Error fetching messages for {conversation_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch messages")


# ----------------------------
# Messages
# ----------------------------

@chat_router.post("/messages", response_model=BaseResponse)
async def save_message(
    body: SaveMessageRequest,
    current_user: dict = Depends(get_current_user),
    conversation_service: Optional[ConversationManager] = Depends(get_conversation_service),
):
    """Persist one message; creates the conversation when no id is given."""
    conversation_service = _require(conversation_service, "Conversation service")
    try:
        message, conversation = await conversation_service.persist_message(
            current_user["user_id"],
            body.role,
            body.content,
            conversation_id=body.conversation_id,
            files=body.files,
        )
        return BaseResponse(
            status=True,
            message="Message saved successfully",
            data={
                "message_id": message.id,
                "conversation_id": conversation.id,
                "title": conversation.title,
            },
        )
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Message creation error: {e}")
        raise HTTPException(status_code=500, detail="Failed to create message")


@chat_router.patch("/messages/{message_id}", response_model=BaseResponse)
async def edit_message(
    message_id: str,
    body: EditMessageRequest,
    current_user: dict = Depends(get_current_user),
    conversation_service: Optional[ConversationManager] = Depends(get_conversation_service),
):
    """Store new content for a message; the previous content is kept in its edit history."""
    conversation_service = _require(conversation_service, "Conversation service")
    try:
        message = await conversation_service.edit_message(current_user["user_id"], message_id, body.content)
        return BaseResponse(
            status=True,
            message="Message updated successfully",
            data=MessageResponse.from_entity(message).model_dump(),
        )
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Message update error: {e}")
        raise HTTPException(status_code=500, detail="Failed to update message")


@chat_router.delete("/messages/{message_id}", response_model=BaseResponse)
async def delete_message(
    message_id: str,
    current_user: dict = Depends(get_current_user),
    conversation_service: Optional[ConversationManager] = Depends(get_conversation_service),
):
    conversation_service = _require(conversation_service, "Conversation service")
    try:
        await conversation_service.delete_message(current_user["user_id"], message_id)
        return BaseResponse(status=True, message="Message deleted successfully", data={"message_id": message_id})
    except (HTTPException, ChatAppError):
        raise
    except Exception as e:
        logger.error(f"Message deletion error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete message")
