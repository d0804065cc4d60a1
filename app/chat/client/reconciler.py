"""
Client-side transcript state.

`TranscriptReconciler` owns the ordered message list of the open conversation
and folds the server's stream events into it. At most one streaming operation
runs at a time; `delete` is allowed at any moment. Persistence happens in
detached tasks chained one after another so the conversation id returned by
the first save is reused by the following ones.
"""

import asyncio
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set

from pydantic import BaseModel, Field

from app.chat.client.api_client import ChatApiClient
from app.chat.client.events import ChatEvent, ChatEventBus
from app.chat.entity.chat import FileAttachment, new_id
from app.chat.stream.events import ChunkEvent, DoneEvent, ErrorEvent
from app.core.exceptions import MessageNotFoundError, OperationInProgressError, ValidationError
from app.core.logger import get_logger

logger = get_logger("TranscriptReconciler")

FALLBACK_REPLY = "Sorry, I could not generate a response. Please try again."
ERROR_NOTICE = "Sorry, I encountered an error. Please try again."


class TranscriptMessage(BaseModel):
    id: str = Field(default_factory=new_id)
    role: str
    content: str = ""
    files: List[FileAttachment] = Field(default_factory=list)
    is_loading: bool = False
    is_edited: bool = False
    edit_history: List[str] = Field(default_factory=list)
    # id of the persisted counterpart, once known
    server_id: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "files": [f.model_dump(mode="json") for f in self.files],
        }


class OperationKind(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    REGENERATING = "regenerating"
    EDITING = "editing"


@dataclass(frozen=True)
class ActiveOperation:
    kind: OperationKind
    index: Optional[int] = None


IDLE = ActiveOperation(OperationKind.IDLE)


class TranscriptReconciler:
    def __init__(
        self,
        api: ChatApiClient,
        bus: Optional[ChatEventBus] = None,
        model: Optional[str] = None,
    ):
        self.api = api
        self.bus = bus or ChatEventBus()
        self.model = model
        self.messages: List[TranscriptMessage] = []
        self.active: ActiveOperation = IDLE
        self.conversation_id: Optional[str] = None

        self._persist_tail: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()
        self._subscriptions = [
            self.bus.subscribe(ChatEvent.NEW_CHAT, self._on_new_chat),
            self.bus.subscribe(ChatEvent.CONVERSATION_SELECTED, self._on_conversation_selected),
        ]

    # ----------------------------
    # Queries
    # ----------------------------
    @property
    def is_idle(self) -> bool:
        return self.active.kind is OperationKind.IDLE

    def loading_messages(self) -> List[TranscriptMessage]:
        return [m for m in self.messages if m.is_loading]

    def find(self, message_id: str) -> Optional[TranscriptMessage]:
        index = self._index_of(message_id)
        return None if index is None else self.messages[index]

    def _index_of(self, message_id: str) -> Optional[int]:
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                return index
        return None

    def _require_index(self, message_id: str) -> int:
        index = self._index_of(message_id)
        if index is None:
            raise MessageNotFoundError(f"Message {message_id} not found in transcript")
        return index

    def _ensure_idle(self) -> None:
        if not self.is_idle:
            raise OperationInProgressError(f"Cannot start: {self.active.kind.value} in progress")

    # ----------------------------
    # Operations
    # ----------------------------
    async def send(self, text: str, files: Sequence[FileAttachment] = ()) -> None:
        """Append a user message and stream the assistant reply into a draft."""
        self._ensure_idle()
        if not text.strip() and not files:
            raise ValidationError("Message is empty")

        self.active = ActiveOperation(OperationKind.SENDING)
        try:
            user_message = TranscriptMessage(role="user", content=text, files=list(files))
            self.messages.append(user_message)
            self._persist_new(user_message)
            await self._stream_reply()
        finally:
            self.active = IDLE

    async def regenerate(self, message_id: str) -> None:
        """Drop the message and everything after it, then stream a new reply."""
        self._ensure_idle()
        index = self._require_index(message_id)

        self.active = ActiveOperation(OperationKind.REGENERATING, index)
        try:
            removed = self.messages[index:]
            del self.messages[index:]
            for message in removed:
                self._persist_delete(message)
            await self._stream_reply()
        finally:
            self.active = IDLE

    async def edit(self, message_id: str, new_content: str) -> None:
        """Replace a message's content in place, drop later messages and stream a new reply."""
        self._ensure_idle()
        index = self._require_index(message_id)
        if not new_content.strip():
            raise ValidationError("Message is empty")

        self.active = ActiveOperation(OperationKind.EDITING, index)
        try:
            message = self.messages[index]
            message.edit_history.append(message.content)
            message.content = new_content
            message.is_edited = True
            self._persist_edit(message, new_content)

            removed = self.messages[index + 1:]
            del self.messages[index + 1:]
            for later in removed:
                self._persist_delete(later)
            await self._stream_reply()
        finally:
            self.active = IDLE

    def delete(self, message_id: str) -> TranscriptMessage:
        """
        Remove exactly one message. Allowed while a stream is running; a
        deleted draft is not re-inserted by later stream events.
        """
        index = self._require_index(message_id)
        message = self.messages.pop(index)
        self._persist_delete(message)
        return message

    async def load(self, conversation_id: str, messages: Sequence[Dict[str, Any]]) -> None:
        """Replace the transcript with persisted messages of a conversation."""
        self._ensure_idle()
        await self.flush()
        self.conversation_id = conversation_id
        self.messages = [
            TranscriptMessage(
                role=m["role"],
                content=m.get("content", ""),
                files=[FileAttachment.model_validate(f) for f in m.get("files", [])],
                is_edited=m.get("is_edited", False),
                edit_history=[h.get("content", "") for h in m.get("edit_history", [])],
                server_id=m.get("message_id"),
            )
            for m in messages
        ]

    async def open_conversation(self, conversation_id: str) -> None:
        self._ensure_idle()
        messages = await self.api.list_messages(conversation_id)
        await self.load(conversation_id, messages)

    async def reset(self) -> None:
        """Start an empty transcript for a new conversation."""
        self._ensure_idle()
        await self.flush()
        self.conversation_id = None
        self.messages = []

    async def flush(self) -> None:
        """Wait until every detached persistence task has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def close(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    # ----------------------------
    # Streaming
    # ----------------------------
    async def _stream_reply(self) -> None:
        context = [m.to_wire() for m in self.messages]
        draft = TranscriptMessage(role="assistant", is_loading=True)
        self.messages.append(draft)

        content = ""
        completed = False
        try:
            async with aclosing(self.api.stream_chat(context, self.model)) as events:
                async for event in events:
                    if isinstance(event, ChunkEvent):
                        content += event.chunk
                        self._apply_chunk(draft.id, content)
                    elif isinstance(event, DoneEvent):
                        completed = True
                        break
                    elif isinstance(event, ErrorEvent):
                        logger.warning(f"Stream reported an error: {event.error}")
                        break
                else:
                    logger.warning("Stream ended without a terminal event")
        except asyncio.CancelledError:
            self._fail(draft.id)
            raise
        except Exception as e:
            logger.error(f"Stream failed: {e}")

        if completed:
            self._finalize(draft.id, content or FALLBACK_REPLY)
        else:
            self._fail(draft.id)

    def _apply_chunk(self, draft_id: str, content: str) -> None:
        draft = self.find(draft_id)
        if draft is None:
            return
        draft.content = content
        draft.is_loading = False

    def _finalize(self, draft_id: str, content: str) -> None:
        draft = self.find(draft_id)
        if draft is None:
            return
        draft.content = content
        draft.is_loading = False
        self._persist_new(draft)

    def _fail(self, draft_id: str) -> None:
        index = self._index_of(draft_id)
        if index is None:
            return
        del self.messages[index]
        self.messages.append(TranscriptMessage(role="assistant", content=ERROR_NOTICE))

    # ----------------------------
    # Detached persistence
    # ----------------------------
    def _chain(self, job: Callable[[], Awaitable[None]], description: str) -> None:
        previous = self._persist_tail

        async def run() -> None:
            if previous is not None:
                await asyncio.gather(previous, return_exceptions=True)
            try:
                await job()
            except Exception as e:
                logger.error(f"Failed to {description}: {e}")

        task = asyncio.create_task(run())
        self._persist_tail = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _persist_new(self, message: TranscriptMessage) -> None:
        role, content = message.role, message.content
        files = [f.model_dump(mode="json") for f in message.files]

        async def save() -> None:
            result = await self.api.save_message(role, content, conversation_id=self.conversation_id, files=files)
            message.server_id = result.get("message_id")
            if self.conversation_id is None:
                self.conversation_id = result.get("conversation_id")
            await self.bus.publish(ChatEvent.HISTORY_CHANGED, {"conversation_id": self.conversation_id})

        self._chain(save, f"save {role} message")

    def _persist_edit(self, message: TranscriptMessage, content: str) -> None:
        async def update() -> None:
            if message.server_id:
                await self.api.update_message(message.server_id, content)

        self._chain(update, "update edited message")

    def _persist_delete(self, message: TranscriptMessage) -> None:
        async def remove() -> None:
            if message.server_id:
                await self.api.delete_message(message.server_id)

        self._chain(remove, "delete message")

    # ----------------------------
    # Notifications
    # ----------------------------
    async def _on_new_chat(self, payload: Optional[Any] = None) -> None:
        await self.reset()

    async def _on_conversation_selected(self, payload: Optional[Any] = None) -> None:
        conversation_id = payload.get("conversation_id") if isinstance(payload, dict) else payload
        if conversation_id and conversation_id != self.conversation_id:
            await self.open_conversation(conversation_id)
