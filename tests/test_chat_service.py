import uuid
from contextlib import aclosing

import pytest

from chatrelay.core.exceptions import (
    ChatNotFoundError,
    EmptyMessageError,
    MissingCredentialError,
    UnsupportedAttachmentError,
    UpstreamError,
)
from chatrelay.core.config import Settings
from chatrelay.services.adapter.registry import AdapterRegistry
from chatrelay.services.chat.messages import ImagePart, TextPart
from chatrelay.services.chat.service import APOLOGY_MESSAGE, ChatService

from fakes import FakeAdapter, FakeRegistry, PNG_DATA_URI, make_attachment


def make_service(store, settings, adapter):
    registry = FakeRegistry(adapter, settings)
    return ChatService(store, registry, settings), registry


async def drain(stream):
    return [chunk async for chunk in stream]


@pytest.mark.asyncio
async def test_first_turn_persists_user_title_and_assistant(store, test_settings):
    chat = await store.create_chat()
    adapter = FakeAdapter(["Hi", "! How can I help?"])
    service, registry = make_service(store, test_settings, adapter)

    chunks = await drain(service.submit_turn(chat.id, "Hello", [], "openai", "gpt-4o-mini"))

    assert registry.requests == [("openai", "gpt-4o-mini")]
    assert len(chunks) >= 1
    assert all(c.type == "content" for c in chunks)
    assert chunks[-1].content == "Hi! How can I help?"

    messages = await store.list_messages(chat.id)
    assert [(m.role, m.content) for m in messages] == [
        ("user", "Hello"),
        ("assistant", "Hi! How can I help?"),
    ]
    assert (await store.get_chat(chat.id)).title == "Hello"


@pytest.mark.asyncio
async def test_defaults_to_configured_provider_and_model(store, test_settings):
    chat = await store.create_chat()
    service, registry = make_service(store, test_settings, FakeAdapter(["ok"]))

    await drain(service.submit_turn(chat.id, "Hello"))

    assert registry.requests == [("openai", "gpt-4o-mini")]


@pytest.mark.asyncio
async def test_title_is_truncated_and_only_set_once(store, test_settings):
    chat = await store.create_chat()
    long_text = "x" * 80
    service, _ = make_service(store, test_settings, FakeAdapter(["ok"]))

    await drain(service.submit_turn(chat.id, long_text))
    assert (await store.get_chat(chat.id)).title == "x" * 50

    await drain(service.submit_turn(chat.id, "Second question"))
    assert (await store.get_chat(chat.id)).title == "x" * 50


@pytest.mark.asyncio
async def test_attachment_on_text_only_model_is_rejected(store, test_settings):
    chat = await store.create_chat()
    adapter = FakeAdapter(["never"])
    service, registry = make_service(store, test_settings, adapter)

    with pytest.raises(UnsupportedAttachmentError):
        await drain(service.submit_turn(
            chat.id, "What is this?", [make_attachment()], "openai", "gpt-3.5-turbo"
        ))

    assert await store.list_messages(chat.id) == []
    assert registry.requests == []
    assert adapter.calls == []
    assert (await store.get_chat(chat.id)).title == "New Chat"


@pytest.mark.asyncio
async def test_blank_message_is_rejected(store, test_settings):
    chat = await store.create_chat()
    service, registry = make_service(store, test_settings, FakeAdapter(["never"]))

    with pytest.raises(EmptyMessageError):
        await service.prepare_turn(chat.id, "   ")

    assert await store.list_messages(chat.id) == []
    assert registry.requests == []


@pytest.mark.asyncio
async def test_unknown_chat_is_rejected(store, test_settings):
    service, _ = make_service(store, test_settings, FakeAdapter(["never"]))

    with pytest.raises(ChatNotFoundError):
        await service.prepare_turn(uuid.uuid4(), "Hello")


@pytest.mark.asyncio
async def test_missing_credential_surfaces_before_any_write(store):
    settings = Settings(_env_file=None, AI_API_KEY="", OPENAI_API_KEY=None)
    chat = await store.create_chat()
    service = ChatService(store, AdapterRegistry(settings), settings)

    with pytest.raises(MissingCredentialError):
        await service.prepare_turn(chat.id, "Hello", provider_id="openai", model_id="gpt-4o")

    assert await store.list_messages(chat.id) == []


@pytest.mark.asyncio
async def test_adapter_failure_persists_apology(store, test_settings):
    chat = await store.create_chat()
    adapter = FakeAdapter(["Partial ans"], error=UpstreamError("connection reset"))
    service, _ = make_service(store, test_settings, adapter)

    chunks = await drain(service.submit_turn(chat.id, "Explain gravity"))

    assert [(c.type, c.content) for c in chunks] == [
        ("content", "Partial ans"),
        ("error", APOLOGY_MESSAGE),
    ]
    messages = await store.list_messages(chat.id)
    assert [(m.role, m.content) for m in messages] == [
        ("user", "Explain gravity"),
        ("assistant", APOLOGY_MESSAGE),
    ]


@pytest.mark.asyncio
async def test_failure_before_first_chunk_persists_apology(store, test_settings):
    chat = await store.create_chat()
    adapter = FakeAdapter([], error=RuntimeError("boom"))
    service, _ = make_service(store, test_settings, adapter)

    chunks = await drain(service.submit_turn(chat.id, "Hello"))

    assert [c.type for c in chunks] == ["error"]
    assistant_turns = [m for m in await store.list_messages(chat.id) if m.role == "assistant"]
    assert [m.content for m in assistant_turns] == [APOLOGY_MESSAGE]


@pytest.mark.asyncio
async def test_consumer_stopping_early_leaves_only_user_turn(store, test_settings):
    chat = await store.create_chat()
    adapter = FakeAdapter(["one", " two", " three"])
    service, _ = make_service(store, test_settings, adapter)

    async with aclosing(service.submit_turn(chat.id, "Count")) as chunks:
        async for chunk in chunks:
            break

    assert adapter.closed is True
    messages = await store.list_messages(chat.id)
    assert [(m.role, m.content) for m in messages] == [("user", "Count")]


@pytest.mark.asyncio
async def test_history_is_sent_without_empty_turns(store, test_settings):
    chat = await store.create_chat()
    await store.add_message(chat.id, "user", "First")
    await store.add_message(chat.id, "assistant", "")
    await store.add_message(chat.id, "user", "  ")
    adapter = FakeAdapter(["ok"])
    service, _ = make_service(store, test_settings, adapter)

    await drain(service.submit_turn(chat.id, "Second"))

    sent = adapter.calls[0]
    assert [(m.role, m.content) for m in sent] == [("user", "First"), ("user", "Second")]
    # Not the chat's first turn, so the title is untouched
    assert (await store.get_chat(chat.id)).title == "New Chat"


@pytest.mark.asyncio
async def test_vision_turn_sends_parts_and_stores_plain_text(store, test_settings):
    chat = await store.create_chat()
    await store.add_message(chat.id, "user", "Hi")
    await store.add_message(chat.id, "assistant", "Hello!")
    adapter = FakeAdapter(["A cat."])
    service, _ = make_service(store, test_settings, adapter)

    await drain(service.submit_turn(
        chat.id, "What is this?", [make_attachment()], "openai", "gpt-4o"
    ))

    sent = adapter.calls[0]
    assert sent[0].content == [TextPart(text="Hi")]
    assert sent[1].content == [TextPart(text="Hello!")]
    assert sent[2].content == [TextPart(text="What is this?"), ImagePart(source_url=PNG_DATA_URI)]

    messages = await store.list_messages(chat.id)
    assert [m.content for m in messages][-2:] == ["What is this?", "A cat."]


@pytest.mark.asyncio
async def test_client_persisted_turns(store, test_settings):
    chat = await store.create_chat()
    service, _ = make_service(store, test_settings, FakeAdapter([]))

    user = await service.add_message(chat.id, "user", "Saved by client")
    assistant = await service.save_assistant_message(chat.id, "Reply")

    assert user.role == "user"
    assert assistant.role == "assistant"
    assert [m.content for m in await store.list_messages(chat.id)] == ["Saved by client", "Reply"]

    with pytest.raises(ChatNotFoundError):
        await service.save_assistant_message(uuid.uuid4(), "orphan")
