"""Test doubles for adapters and the adapter registry."""
from typing import AsyncIterator, Optional

from chatrelay.core.config import Settings
from chatrelay.services.adapter.provider import StreamingAdapter
from chatrelay.services.adapter.registry import AdapterRegistry
from chatrelay.services.chat.messages import AttachedFile, ChatMessage, StreamChunk


class FakeAdapter(StreamingAdapter):
    """Emits scripted deltas as snapshots, optionally failing afterwards."""

    provider_name = "openai"
    endpoint = "chat/completions"

    def __init__(
        self,
        deltas: list[str],
        error: Optional[Exception] = None,
        model: str = "gpt-4o-mini",
    ):
        super().__init__(model, api_key="sk-test")
        self.deltas = deltas
        self.error = error
        self.calls: list[list[ChatMessage]] = []
        self.closed = False

    def _build_request(self, messages):
        return {}, {}, {}

    def _parse_event(self, event):
        return "", None

    async def chat_stream(self, messages: list[ChatMessage]) -> AsyncIterator[StreamChunk]:
        self.calls.append(messages)
        accumulated = ""
        try:
            for delta in self.deltas:
                accumulated += delta
                yield StreamChunk(type="content", content=accumulated)
            if self.error is not None:
                raise self.error
            yield StreamChunk(type="done", content=accumulated, finish_reason="stop")
        finally:
            self.closed = True


class FakeRegistry(AdapterRegistry):
    """Hands out one prepared adapter and records every request."""

    def __init__(self, adapter: StreamingAdapter, settings: Optional[Settings] = None):
        super().__init__(settings)
        self.adapter = adapter
        self.requests: list[tuple[str, str]] = []

    def get_adapter(self, provider_id, model_id):
        self.requests.append((provider_id, model_id))
        return self.adapter


PNG_DATA_URI = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
JPEG_DATA_URI = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD/2wBDAAEBAQ=="


def make_attachment(name: str = "photo.png", data: str = PNG_DATA_URI, **overrides) -> AttachedFile:
    fields = {
        "id": name,
        "name": name,
        "type": data.split(";", 1)[0][5:] if data.startswith("data:") else "image/png",
        "size": len(data),
        "data": data,
        "preview": data,
    }
    fields.update(overrides)
    return AttachedFile(**fields)
