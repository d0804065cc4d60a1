"""Shared fakes and fixtures: in-memory repositories, a scripted model provider, a wired app."""

import asyncio
from types import SimpleNamespace
from typing import Dict, List, Optional

import httpx
import pytest

from app.chat.entity.chat import Conversation, Message
from app.chat.service.service import IChatRepository
from app.chat.stream.events import ChunkEvent, DoneEvent
from app.core.exceptions import FileProcessingError, FileTooLargeError
from app.core.logger import get_logger
from app.llm.entity.prompt import NormalizedMessage
from app.llm.service.provider.base_provider import BaseProvider
from app.memory.entity.memory import MemoryEntry
from app.memory.service.service import IMemoryRepository
from app.upload.entity.upload import UploadRecord
from app.upload.service.service import IObjectStore, IUploadRepository
from pkg.auth_token_client.client import TokenClient, TokenPayload
from pkg.file_processor.processor import FileProcessor

FALLBACK_CHAIN = ["gemini-2.0-flash", "gemini-1.5-flash", "gemini-1.5-pro"]
DEFAULT_MODEL = "gemini-2.0-flash"


class StatusError(Exception):
    """Upstream error carrying an HTTP status, like provider SDK errors do."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


def rate_limit_error(model: str = "") -> StatusError:
    return StatusError(f"429 RESOURCE_EXHAUSTED for {model}", 429)


class ScriptedProvider(BaseProvider):
    """
    Plays back a script per model: a list of text fragments and exceptions.
    An exception at position 0 fails while pulling the first fragment.
    """

    name = "scripted"

    def __init__(self, scripts: Optional[Dict[str, list]] = None, default: Optional[list] = None):
        self.scripts = scripts or {}
        self.default = default if default is not None else ["Hi", " there"]
        self.calls: List[tuple] = []
        self.closed: List[str] = []

    async def stream_text(self, model: str, messages: List[NormalizedMessage]):
        self.calls.append((model, list(messages)))
        try:
            for item in self.scripts.get(model, self.default):
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed.append(model)

    @property
    def models_called(self) -> List[str]:
        return [model for model, _ in self.calls]


class InMemoryChatRepository(IChatRepository):
    def __init__(self):
        self.conversations: Dict[str, Conversation] = {}
        self.messages: Dict[str, Message] = {}

    async def create_conversation(self, conversation):
        self.conversations[conversation.id] = conversation.model_copy()
        return conversation

    async def get_conversation(self, owner_id, conversation_id):
        conversation = self.conversations.get(conversation_id)
        if conversation is None or conversation.owner_id != owner_id:
            return None
        return conversation.model_copy()

    async def list_conversations(self, owner_id):
        owned = [c for c in self.conversations.values() if c.owner_id == owner_id]
        return sorted(owned, key=lambda c: c.updated_at, reverse=True)

    async def update_conversation(self, conversation):
        stored = self.conversations.get(conversation.id)
        if stored is not None and stored.owner_id == conversation.owner_id:
            self.conversations[conversation.id] = conversation.model_copy()

    async def delete_conversation(self, owner_id, conversation_id):
        if await self.get_conversation(owner_id, conversation_id) is None:
            return False
        del self.conversations[conversation_id]
        for message_id in [m.id for m in self.messages.values() if m.conversation_id == conversation_id]:
            del self.messages[message_id]
        return True

    async def add_message(self, message):
        self.messages[message.id] = message.model_copy(deep=True)
        return message

    async def list_messages(self, owner_id, conversation_id):
        found = [
            m.model_copy(deep=True) for m in self.messages.values()
            if m.conversation_id == conversation_id and m.owner_id == owner_id
        ]
        return sorted(found, key=lambda m: m.created_at)

    async def count_messages(self, owner_id, conversation_id, role=None):
        return len([
            m for m in await self.list_messages(owner_id, conversation_id)
            if role is None or m.role == role
        ])

    async def get_message(self, owner_id, message_id):
        message = self.messages.get(message_id)
        if message is None or message.owner_id != owner_id:
            return None
        return message.model_copy(deep=True)

    async def update_message(self, message):
        if message.id in self.messages:
            self.messages[message.id] = message.model_copy(deep=True)

    async def delete_message(self, owner_id, message_id):
        if await self.get_message(owner_id, message_id) is None:
            return False
        del self.messages[message_id]
        return True


class InMemoryMemoryRepository(IMemoryRepository):
    def __init__(self):
        self.entries: Dict[str, MemoryEntry] = {}

    async def add(self, entry):
        self.entries[entry.id] = entry.model_copy()
        return entry

    async def list_by_owner(self, owner_id):
        return [e.model_copy() for e in self.entries.values() if e.owner_id == owner_id]

    async def get(self, owner_id, memory_id):
        entry = self.entries.get(memory_id)
        return entry.model_copy() if entry and entry.owner_id == owner_id else None

    async def update(self, entry):
        self.entries[entry.id] = entry.model_copy()

    async def delete(self, owner_id, memory_id):
        if await self.get(owner_id, memory_id) is None:
            return False
        del self.entries[memory_id]
        return True


class InMemoryUploadRepository(IUploadRepository):
    def __init__(self):
        self.records: List[UploadRecord] = []

    async def add(self, record):
        self.records.append(record)
        return record

    async def list_by_owner(self, owner_id):
        return [r for r in self.records if r.owner_id == owner_id]


class FakeObjectStore(IObjectStore):
    def __init__(self):
        self.blobs: Dict[str, tuple] = {}

    async def put(self, key, data, content_type):
        self.blobs[key] = (data, content_type)
        return f"https://files.test/{key}"


class FakeFileProcessor(FileProcessor):
    """Serves fetches from a dict instead of the network."""

    def __init__(self, files: Optional[Dict[str, bytes]] = None):
        super().__init__(get_logger("FakeFileProcessor"))
        self.files = files or {}

    async def fetch(self, url, max_bytes=None):
        if url not in self.files:
            raise FileProcessingError(f"Failed to fetch file: 404 for {url}")
        data = self.files[url]
        if max_bytes is not None and len(data) > max_bytes:
            raise FileTooLargeError(f"Remote file exceeds {max_bytes} bytes")
        return data


@pytest.fixture
def token_client():
    return TokenClient("test-secret")


@pytest.fixture
def auth_headers(token_client):
    def make(user_id: str = "user-1") -> dict:
        token = token_client.create_access_token(TokenPayload(user_id=user_id))
        return {"Authorization": f"Bearer {token}"}

    return make


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def wired(provider, token_client):
    """main.app wired with in-memory collaborators."""
    from main import app, wire_services

    env = SimpleNamespace(
        app=app,
        provider=provider,
        chat_repo=InMemoryChatRepository(),
        memory_repo=InMemoryMemoryRepository(),
        upload_repo=InMemoryUploadRepository(),
        object_store=FakeObjectStore(),
        file_processor=FakeFileProcessor(),
    )
    wire_services(
        app,
        chat_repo=env.chat_repo,
        memory_repo=env.memory_repo,
        upload_repo=env.upload_repo,
        object_store=env.object_store,
        provider=provider,
        file_processor=env.file_processor,
        token_client=token_client,
    )
    adapter = app.state.chat_service.adapter
    adapter.fallback_models = list(FALLBACK_CHAIN)
    adapter.default_model = DEFAULT_MODEL
    return env


def asgi_client(app, headers: Optional[dict] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test", headers=headers or {})


class FakeChatApi:
    """
    Stand-in for ChatApiClient used by the client-side components.

    Each stream_chat call consumes the next script: a list of events and
    exceptions, or an asyncio.Queue fed by the test (None ends the stream).
    """

    def __init__(self):
        self.scripts: list = []
        self.stream_requests: List[list] = []
        self.saved: List[tuple] = []
        self.updated: List[tuple] = []
        self.deleted: List[str] = []
        self.stored_messages: Dict[str, list] = {}
        self.conversations: List[dict] = []
        self.deleted_conversations: List[str] = []

    def script(self, *events) -> None:
        self.scripts.append(list(events))

    def gate(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self.scripts.append(queue)
        return queue

    async def stream_chat(self, messages, model=None):
        self.stream_requests.append(list(messages))
        source = self.scripts.pop(0) if self.scripts else [ChunkEvent(chunk="Hi"), ChunkEvent(chunk=" there"), DoneEvent()]
        if isinstance(source, asyncio.Queue):
            while True:
                item = await source.get()
                if item is None:
                    return
                if isinstance(item, BaseException):
                    raise item
                yield item
        else:
            for item in source:
                if isinstance(item, BaseException):
                    raise item
                yield item

    async def save_message(self, role, content, conversation_id=None, files=None):
        conversation_id = conversation_id or f"conv-{len(self.saved) + 1}"
        self.saved.append((role, content, conversation_id))
        return {"message_id": f"srv-{len(self.saved)}", "conversation_id": conversation_id, "title": content[:50]}

    async def update_message(self, message_id, content):
        self.updated.append((message_id, content))
        return {"message_id": message_id, "content": content}

    async def delete_message(self, message_id):
        self.deleted.append(message_id)

    async def list_messages(self, conversation_id):
        return self.stored_messages.get(conversation_id, [])

    async def list_conversations(self):
        return list(self.conversations)

    async def delete_conversation(self, conversation_id):
        self.deleted_conversations.append(conversation_id)
        self.conversations = [c for c in self.conversations if c["conversation_id"] != conversation_id]


async def settle(condition=None, rounds: int = 100) -> None:
    """Yield to the event loop until `condition()` holds (or a number of rounds passed)."""
    for _ in range(rounds):
        if condition is not None and condition():
            return
        await asyncio.sleep(0)
