"""
Stream multiplexer.

Drives an adapter's streaming call and re-emits only content snapshots.
"""
from contextlib import aclosing
from typing import AsyncIterator, Optional

from chatrelay.core.config import Settings
from chatrelay.core.logging import AIDebugLogger, get_logger
from chatrelay.services.adapter.provider import StreamingAdapter
from chatrelay.services.chat.messages import ChatMessage, StreamChunk

logger = get_logger(__name__)


async def stream_turn(
    adapter: StreamingAdapter,
    messages: list[ChatMessage],
    settings: Optional[Settings] = None,
) -> AsyncIterator[StreamChunk]:
    """
    Yield the content chunks of one adapter stream, in order.

    Chunks of any other type are absorbed. Errors raised by the adapter are
    not retried and propagate to the caller. Closing this generator closes
    the adapter stream and its upstream connection.
    """
    debug_logger = AIDebugLogger(logger, settings)
    with debug_logger.track_call(
        provider=adapter.provider_name,
        model=adapter.model,
        endpoint=adapter.endpoint,
    ) as call:
        call.add_messages(messages)
        async with aclosing(adapter.chat_stream(messages)) as chunks:
            async for chunk in chunks:
                if chunk.type == "content":
                    call.record_chunk(chunk.content)
                    yield chunk
                elif chunk.type == "done":
                    call.set_finish_reason(chunk.finish_reason)
