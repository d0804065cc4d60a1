"""Tests for conversation and message persistence rules"""

from datetime import datetime, timezone

import pytest

from app.chat.entity.chat import FileAttachment
from app.chat.service.conversation_service import ConversationManager, derive_title
from app.core.exceptions import NotFoundError, ValidationError
from conftest import InMemoryChatRepository


@pytest.fixture
def repo():
    return InMemoryChatRepository()


@pytest.fixture
def manager(repo):
    return ConversationManager(repo)


def test_derive_title():
    assert derive_title("x" * 60) == "x" * 50 + "…"
    assert derive_title("y" * 50) == "y" * 50
    assert derive_title("Hello") == "Hello"
    assert derive_title("   ") == "New Chat"


@pytest.mark.asyncio
async def test_first_user_message_creates_titled_conversation(manager, repo):
    message, conversation = await manager.persist_message("u1", "user", "a" * 60)

    assert conversation.title == "a" * 50 + "…"
    assert message.conversation_id == conversation.id
    assert repo.conversations[conversation.id].owner_id == "u1"


@pytest.mark.asyncio
async def test_assistant_first_then_user_sets_title(manager):
    _, conversation = await manager.persist_message("u1", "assistant", "Welcome!")
    assert conversation.title == "New Chat"

    _, conversation = await manager.persist_message("u1", "user", "Plan my trip", conversation_id=conversation.id)
    assert conversation.title == "Plan my trip"

    _, conversation = await manager.persist_message("u1", "user", "And a budget", conversation_id=conversation.id)
    assert conversation.title == "Plan my trip"


@pytest.mark.asyncio
async def test_persist_bumps_updated_at(manager, repo):
    _, conversation = await manager.persist_message("u1", "user", "hello")
    old = datetime(2020, 1, 1, tzinfo=timezone.utc)
    repo.conversations[conversation.id].updated_at = old

    await manager.persist_message("u1", "assistant", "hi", conversation_id=conversation.id)
    assert repo.conversations[conversation.id].updated_at > old


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", None])
async def test_empty_content_rejected(manager, content):
    with pytest.raises(ValidationError):
        await manager.persist_message("u1", "user", content)


@pytest.mark.asyncio
async def test_other_owner_sees_nothing(manager):
    message, conversation = await manager.persist_message("u1", "user", "secret")

    with pytest.raises(NotFoundError):
        await manager.get_conversation("u2", conversation.id)
    with pytest.raises(NotFoundError):
        await manager.list_messages("u2", conversation.id)
    with pytest.raises(NotFoundError):
        await manager.persist_message("u2", "user", "hijack", conversation_id=conversation.id)
    with pytest.raises(NotFoundError):
        await manager.edit_message("u2", message.id, "changed")
    with pytest.raises(NotFoundError):
        await manager.delete_conversation("u2", conversation.id)
    assert await manager.list_conversations("u2") == []


@pytest.mark.asyncio
async def test_delete_conversation_removes_messages(manager, repo):
    _, conversation = await manager.persist_message("u1", "user", "one")
    await manager.persist_message("u1", "assistant", "two", conversation_id=conversation.id)

    await manager.delete_conversation("u1", conversation.id)

    assert repo.messages == {}
    with pytest.raises(NotFoundError):
        await manager.get_conversation("u1", conversation.id)


@pytest.mark.asyncio
async def test_edit_keeps_history(manager):
    message, _ = await manager.persist_message("u1", "user", "first draft")

    edited = await manager.edit_message("u1", message.id, "second draft")
    edited = await manager.edit_message("u1", message.id, "final")

    assert edited.content == "final"
    assert edited.is_edited is True
    assert [e.content for e in edited.edit_history] == ["first draft", "second draft"]


@pytest.mark.asyncio
async def test_messages_keep_files_and_order(manager):
    image = FileAttachment(name="cat.png", url="https://files.test/cat.png", mediaType="image/png")
    _, conversation = await manager.persist_message("u1", "user", "look", files=[image])
    await manager.persist_message("u1", "assistant", "a cat", conversation_id=conversation.id)

    messages = await manager.list_messages("u1", conversation.id)
    assert [m.content for m in messages] == ["look", "a cat"]
    assert messages[0].files[0].media_type == "image/png"


@pytest.mark.asyncio
async def test_rename_and_delete_message(manager):
    message, conversation = await manager.persist_message("u1", "user", "hello")

    renamed = await manager.rename_conversation("u1", conversation.id, "  Greetings  ")
    assert renamed.title == "Greetings"
    with pytest.raises(ValidationError):
        await manager.rename_conversation("u1", conversation.id, " ")

    await manager.delete_message("u1", message.id)
    assert await manager.list_messages("u1", conversation.id) == []
    with pytest.raises(NotFoundError):
        await manager.delete_message("u1", message.id)
