"""Tests for the client notification bus and the conversation list"""

import pytest

from app.chat.client.events import ChatEvent, ChatEventBus
from app.chat.client.history import ConversationHistory
from app.chat.client.reconciler import TranscriptReconciler
from conftest import FakeChatApi


@pytest.mark.asyncio
async def test_publish_reaches_sync_and_async_handlers_in_order():
    bus = ChatEventBus()
    calls = []

    async def async_handler(payload):
        calls.append(("async", payload))

    bus.subscribe(ChatEvent.NEW_CHAT, lambda payload: calls.append(("sync", payload)))
    bus.subscribe(ChatEvent.NEW_CHAT, async_handler)

    await bus.publish(ChatEvent.NEW_CHAT, {"x": 1})
    assert calls == [("sync", {"x": 1}), ("async", {"x": 1})]


@pytest.mark.asyncio
async def test_unsubscribe_and_failing_handler():
    bus = ChatEventBus()
    calls = []

    def broken(payload):
        raise RuntimeError("handler bug")

    bus.subscribe(ChatEvent.HISTORY_CHANGED, broken)
    unsubscribe = bus.subscribe(ChatEvent.HISTORY_CHANGED, calls.append)

    await bus.publish(ChatEvent.HISTORY_CHANGED, 1)
    unsubscribe()
    unsubscribe()
    await bus.publish(ChatEvent.HISTORY_CHANGED, 2)

    assert calls == [1]


@pytest.mark.asyncio
async def test_event_names_match_the_web_client():
    assert ChatEvent.NEW_CHAT.value == "new-chat"
    assert ChatEvent.CONVERSATION_SELECTED.value == "conversation-select"
    assert ChatEvent.HISTORY_CHANGED.value == "refresh-history"


@pytest.mark.asyncio
async def test_history_refreshes_when_transcript_persists():
    api = FakeChatApi()
    bus = ChatEventBus()
    history = ConversationHistory(api, bus)
    reconciler = TranscriptReconciler(api, bus)

    api.conversations = [{"conversation_id": "conv-1", "title": "hi"}]
    await reconciler.send("hi")
    await reconciler.flush()

    assert history.conversations == [{"conversation_id": "conv-1", "title": "hi"}]
    history.close()
    reconciler.close()


@pytest.mark.asyncio
async def test_selecting_a_conversation_loads_it():
    api = FakeChatApi()
    api.stored_messages["c2"] = [{"message_id": "m1", "role": "user", "content": "earlier"}]
    bus = ChatEventBus()
    history = ConversationHistory(api, bus)
    reconciler = TranscriptReconciler(api, bus)

    await history.select("c2")

    assert history.selected_id == "c2"
    assert reconciler.conversation_id == "c2"
    assert [m.content for m in reconciler.messages] == ["earlier"]


@pytest.mark.asyncio
async def test_deleting_selected_conversation_starts_new_chat():
    api = FakeChatApi()
    api.conversations = [{"conversation_id": "c1", "title": "a"}, {"conversation_id": "c2", "title": "b"}]
    api.stored_messages["c1"] = [{"message_id": "m1", "role": "user", "content": "bye"}]
    bus = ChatEventBus()
    history = ConversationHistory(api, bus)
    reconciler = TranscriptReconciler(api, bus)

    await history.select("c1")
    await history.delete("c1")

    assert api.deleted_conversations == ["c1"]
    assert history.selected_id is None
    assert reconciler.conversation_id is None
    assert reconciler.messages == []
    assert [c["conversation_id"] for c in history.conversations] == ["c2"]


@pytest.mark.asyncio
async def test_deleting_other_conversation_keeps_selection():
    api = FakeChatApi()
    api.conversations = [{"conversation_id": "c1", "title": "a"}, {"conversation_id": "c2", "title": "b"}]
    bus = ChatEventBus()
    history = ConversationHistory(api, bus)

    await history.select("c1")
    await history.delete("c2")

    assert history.selected_id == "c1"
    assert [c["conversation_id"] for c in history.conversations] == ["c1"]
