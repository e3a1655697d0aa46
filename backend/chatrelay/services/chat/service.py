"""
Chat Service - reconciles a streamed turn with durable storage.

A submission is handled in two phases:
1. prepare_turn: load history, validate and normalize the turn, build the
   adapter. Nothing is written; every validation or configuration error
   surfaces here.
2. run_turn: persist the user turn (and the title on a chat's first turn),
   stream the response, then persist the assistant turn. A failure while
   streaming is turned into a persisted apology turn instead of an error.
"""
import uuid
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence

from chatrelay.core.config import Settings, settings as default_settings
from chatrelay.core.exceptions import ChatNotFoundError
from chatrelay.core.logging import get_logger
from chatrelay.models.chat import Message
from chatrelay.services.adapter.provider import StreamingAdapter
from chatrelay.services.adapter.registry import AdapterRegistry
from chatrelay.services.catalog import ProviderModel, capabilities_for
from chatrelay.services.chat.messages import AttachedFile, ChatMessage, StreamChunk
from chatrelay.services.chat.normalizer import normalize_turn
from chatrelay.services.chat.store import ChatStore
from chatrelay.services.chat.stream import stream_turn

logger = get_logger(__name__)

APOLOGY_MESSAGE = "Sorry, I couldn't process your request. Please try again."
TITLE_MAX_LENGTH = 50


@dataclass
class PreparedTurn:
    """A validated submission, ready to be streamed."""
    chat_id: uuid.UUID
    user_text: str
    model: ProviderModel
    messages: list[ChatMessage]
    adapter: StreamingAdapter
    is_first_turn: bool


class ChatService:
    """Runs chat submissions against a provider and persists the outcome."""

    def __init__(
        self,
        store: ChatStore,
        registry: AdapterRegistry,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.registry = registry
        self.settings = settings or default_settings

    async def prepare_turn(
        self,
        chat_id: uuid.UUID,
        user_text: str,
        attachments: Optional[Sequence[AttachedFile]] = None,
        provider_id: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> PreparedTurn:
        """
        Validate a submission and build everything needed to stream it.

        Raises:
            ChatNotFoundError: unknown chat
            ValidationError: empty text or unacceptable attachments
            ConfigurationError: the provider's credential is missing
        """
        provider = self.registry.resolve_provider(provider_id or self.settings.DEFAULT_PROVIDER)
        model_id = model_id or self.settings.DEFAULT_MODEL

        chat = await self.store.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError(str(chat_id))

        history = await self.store.list_messages(chat_id)
        model = capabilities_for(provider, model_id)
        messages = normalize_turn(
            [ChatMessage(role=m.role, content=m.content) for m in history],
            user_text,
            attachments,
            model,
        )
        adapter = self.registry.get_adapter(provider, model_id)

        return PreparedTurn(
            chat_id=chat_id,
            user_text=user_text,
            model=model,
            messages=messages,
            adapter=adapter,
            is_first_turn=not history,
        )

    async def run_turn(self, turn: PreparedTurn) -> AsyncIterator[StreamChunk]:
        """
        Persist and stream a prepared turn.

        Yields the content snapshots of the response. If the provider fails,
        an apology turn is persisted and a final error chunk carrying the
        apology is yielded; the exception is not re-raised. If the consumer
        stops early, no assistant turn is written.
        """
        await self.store.add_message(turn.chat_id, "user", turn.user_text)
        if turn.is_first_turn:
            await self.store.update_title(turn.chat_id, turn.user_text[:TITLE_MAX_LENGTH])

        logger.info(
            "Streaming turn",
            chat_id=str(turn.chat_id),
            provider=turn.adapter.provider_name,
            model=turn.model.model_id,
            multimodal=any(m.is_multimodal for m in turn.messages),
            message_count=len(turn.messages),
        )

        final_content = ""
        try:
            async with aclosing(stream_turn(turn.adapter, turn.messages, self.settings)) as chunks:
                async for chunk in chunks:
                    final_content = chunk.content
                    yield chunk
        except Exception as e:
            logger.error(
                "Streaming error",
                chat_id=str(turn.chat_id),
                provider=turn.adapter.provider_name,
                model=turn.model.model_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            await self.store.add_message(turn.chat_id, "assistant", APOLOGY_MESSAGE)
            yield StreamChunk(type="error", content=APOLOGY_MESSAGE)
            return

        await self.store.add_message(turn.chat_id, "assistant", final_content)
        logger.info(
            "Turn completed",
            chat_id=str(turn.chat_id),
            response_chars=len(final_content),
        )

    async def submit_turn(
        self,
        chat_id: uuid.UUID,
        user_text: str,
        attachments: Optional[Sequence[AttachedFile]] = None,
        provider_id: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> AsyncIterator[StreamChunk]:
        """prepare_turn and run_turn as a single stream."""
        turn = await self.prepare_turn(chat_id, user_text, attachments, provider_id, model_id)
        async with aclosing(self.run_turn(turn)) as chunks:
            async for chunk in chunks:
                yield chunk

    async def add_message(self, chat_id: uuid.UUID, role: str, content: str) -> Message:
        """Persist a turn supplied by the client."""
        if await self.store.get_chat(chat_id) is None:
            raise ChatNotFoundError(str(chat_id))
        return await self.store.add_message(chat_id, role, content)

    async def save_assistant_message(self, chat_id: uuid.UUID, content: str) -> Message:
        return await self.add_message(chat_id, "assistant", content)
