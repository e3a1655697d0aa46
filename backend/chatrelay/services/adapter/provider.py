"""
AI Provider Adapter - Abstract layer for multiple LLM providers.
Supports OpenAI, Anthropic Claude, Google Gemini, Ollama and xAI Grok.

Every adapter turns the provider's native streaming format into a uniform
sequence of StreamChunk snapshots: each content chunk carries the full text
accumulated so far, and the stream ends with one done chunk.
"""
import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Optional

import httpx

from chatrelay.core.exceptions import UpstreamError
from chatrelay.core.logging import get_logger
from chatrelay.services.chat.messages import ChatMessage, ImagePart, StreamChunk, TextPart

logger = get_logger(__name__)


# Provider configurations
PROVIDER_CONFIG = {
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "default_model": "gpt-4o-mini",
    },
    "anthropic": {
        "base_url": "https://api.anthropic.com/v1",
        "default_model": "claude-sonnet-4-5",
    },
    "gemini": {
        "base_url": "https://generativelanguage.googleapis.com/v1beta",
        "default_model": "gemini-2.5-flash",
    },
    "ollama": {
        "base_url": "http://localhost:11434",
        "default_model": "llama3.2",
    },
    "grok": {
        "base_url": "https://api.x.ai/v1",
        "default_model": "grok-3",
    },
}

ANTHROPIC_VERSION = "2023-06-01"


class StreamingAdapter(ABC):
    """
    Abstract base class for streaming provider adapters.

    Subclasses describe the request (`_build_request`) and how to read one
    decoded stream event (`_parse_event`); the base class owns the HTTP
    lifecycle and the accumulation into snapshots.
    """

    provider_name = "unknown"

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.api_key = api_key
        self.base_url = (base_url or PROVIDER_CONFIG[self.provider_name]["base_url"]).rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._transport = transport

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """Path of the streaming endpoint, relative to base_url."""

    @abstractmethod
    def _build_request(self, messages: list[ChatMessage]) -> tuple[dict, dict, dict]:
        """Return (headers, query params, JSON body) for a streaming call."""

    @abstractmethod
    def _parse_event(self, event: dict) -> tuple[str, Optional[str]]:
        """Return (text delta, finish reason) for one decoded event."""

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self._transport)

    async def _iter_events(self, response: httpx.Response) -> AsyncIterator[dict]:
        """Decode Server-Sent Events `data:` lines into JSON objects."""
        async for line in response.aiter_lines():
            if not line.startswith("data:"):
                continue
            data = line[5:].strip()
            if not data:
                continue
            if data == "[DONE]":
                break
            yield _decode_json(data, self.provider_name)

    async def chat_stream(self, messages: list[ChatMessage]) -> AsyncIterator[StreamChunk]:
        """
        Send a streaming chat request.

        Yields a content chunk with the accumulated text after every
        non-empty delta, then a single done chunk.

        Raises:
            UpstreamError: non-2xx status, timeout, transport failure or a
                malformed/error event
        """
        url = f"{self.base_url}/{self.endpoint}"
        headers, params, body = self._build_request(messages)

        logger.debug(
            "Starting streaming request",
            provider=self.provider_name,
            model=self.model,
            message_count=len(messages),
        )

        accumulated = ""
        finish_reason: Optional[str] = None
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    url,
                    headers={"Content-Type": "application/json", **headers},
                    params=params or None,
                    json=body,
                ) as response:
                    if response.status_code != 200:
                        error_text = await response.aread()
                        raise UpstreamError(
                            f"AI API Error: {response.status_code} - "
                            f"{error_text.decode(errors='replace')}",
                            status_code=response.status_code,
                        )

                    async for event in self._iter_events(response):
                        delta, reason = self._parse_event(event)
                        if reason:
                            finish_reason = reason
                        if delta:
                            accumulated += delta
                            yield StreamChunk(type="content", content=accumulated)

        except httpx.TimeoutException as e:
            raise UpstreamError("AI request timed out, please try again") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"AI request failed: {e}") from e

        yield StreamChunk(type="done", content=accumulated, finish_reason=finish_reason)


def _decode_json(data: str, provider: str) -> dict:
    try:
        event = json.loads(data)
    except json.JSONDecodeError as e:
        raise UpstreamError(f"Malformed stream event from {provider}: {data[:200]}") from e
    if not isinstance(event, dict):
        raise UpstreamError(f"Unexpected stream event from {provider}: {data[:200]}")
    return event


def _error_message(event: dict) -> Optional[str]:
    error = event.get("error")
    if not error:
        return None
    if isinstance(error, dict):
        return error.get("message") or json.dumps(error)
    return str(error)


def _split_system(messages: list[ChatMessage]) -> tuple[str, list[ChatMessage]]:
    """Pull system messages out of the conversation."""
    system_content = ""
    chat_messages = []
    for msg in messages:
        if msg.role == "system":
            system_content += msg.text() + "\n"
        else:
            chat_messages.append(msg)
    return system_content.strip(), chat_messages


class OpenAICompatibleAdapter(StreamingAdapter):
    """
    Adapter for OpenAI-compatible APIs.
    Works with OpenAI and xAI Grok.
    """

    provider_name = "openai"
    endpoint = "chat/completions"

    def __init__(self, model: str, api_key: str, provider_name: str = "openai", **kwargs: Any):
        self.provider_name = provider_name
        super().__init__(model, api_key=api_key, **kwargs)

    @staticmethod
    def _convert_message(msg: ChatMessage) -> dict:
        if isinstance(msg.content, str):
            return {"role": msg.role, "content": msg.content}
        parts = []
        for part in msg.content:
            if isinstance(part, TextPart):
                parts.append({"type": "text", "text": part.text})
            elif isinstance(part, ImagePart):
                parts.append({
                    "type": "image_url",
                    "image_url": {"url": part.source_url, "detail": part.detail},
                })
        return {"role": msg.role, "content": parts}

    def _build_request(self, messages: list[ChatMessage]) -> tuple[dict, dict, dict]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        body = {
            "model": self.model,
            "messages": [self._convert_message(m) for m in messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": True,
        }
        return headers, {}, body

    def _parse_event(self, event: dict) -> tuple[str, Optional[str]]:
        error = _error_message(event)
        if error:
            raise UpstreamError(f"AI API Error: {error}")
        choices = event.get("choices") or [{}]
        choice = choices[0]
        delta = choice.get("delta") or {}
        return delta.get("content") or "", choice.get("finish_reason")


class AnthropicAdapter(StreamingAdapter):
    """Adapter for Anthropic Claude Messages API."""

    provider_name = "anthropic"
    endpoint = "messages"

    def __init__(self, model: str, api_key: str, **kwargs: Any):
        super().__init__(model, api_key=api_key, **kwargs)

    @staticmethod
    def _convert_message(msg: ChatMessage) -> dict:
        if isinstance(msg.content, str):
            return {"role": msg.role, "content": msg.content}
        blocks = []
        for part in msg.content:
            if isinstance(part, TextPart):
                blocks.append({"type": "text", "text": part.text})
            elif isinstance(part, ImagePart):
                blocks.append({
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": part.mime_type,
                        "data": part.base64_data,
                    },
                })
        return {"role": msg.role, "content": blocks}

    def _build_request(self, messages: list[ChatMessage]) -> tuple[dict, dict, dict]:
        system_content, chat_messages = _split_system(messages)
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [self._convert_message(m) for m in chat_messages],
            "temperature": self.temperature,
            "stream": True,
        }
        if system_content:
            body["system"] = system_content
        return headers, {}, body

    def _parse_event(self, event: dict) -> tuple[str, Optional[str]]:
        event_type = event.get("type")
        if event_type == "error":
            raise UpstreamError(f"AI API Error: {_error_message(event)}")
        if event_type == "content_block_delta":
            delta = event.get("delta", {})
            if delta.get("type") == "text_delta":
                return delta.get("text", ""), None
        elif event_type == "message_delta":
            return "", event.get("delta", {}).get("stop_reason")
        return "", None


class GeminiAdapter(StreamingAdapter):
    """Adapter for Google Gemini API."""

    provider_name = "gemini"

    def __init__(self, model: str, api_key: str, **kwargs: Any):
        super().__init__(model, api_key=api_key, **kwargs)

    @property
    def endpoint(self) -> str:
        return f"models/{self.model}:streamGenerateContent"

    @staticmethod
    def _convert_parts(msg: ChatMessage) -> list[dict]:
        if isinstance(msg.content, str):
            return [{"text": msg.content}]
        parts = []
        for part in msg.content:
            if isinstance(part, TextPart):
                parts.append({"text": part.text})
            elif isinstance(part, ImagePart):
                parts.append({
                    "inline_data": {
                        "mime_type": part.mime_type,
                        "data": part.base64_data,
                    }
                })
        return parts

    def _convert_messages_to_gemini_format(
        self,
        messages: list[ChatMessage]
    ) -> tuple[str, list[dict]]:
        """Convert OpenAI-style messages to Gemini format."""
        system_instruction, chat_messages = _split_system(messages)
        contents = [
            {
                "role": "user" if msg.role == "user" else "model",
                "parts": self._convert_parts(msg),
            }
            for msg in chat_messages
        ]
        return system_instruction, contents

    def _build_request(self, messages: list[ChatMessage]) -> tuple[dict, dict, dict]:
        system_instruction, contents = self._convert_messages_to_gemini_format(messages)
        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            }
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        return {}, {"key": self.api_key, "alt": "sse"}, body

    def _parse_event(self, event: dict) -> tuple[str, Optional[str]]:
        error = _error_message(event)
        if error:
            raise UpstreamError(f"AI API Error: {error}")
        candidates = event.get("candidates", [])
        if not candidates:
            return "", None
        candidate = candidates[0]
        text = "".join(
            part["text"]
            for part in candidate.get("content", {}).get("parts", [])
            if "text" in part
        )
        return text, candidate.get("finishReason")


class OllamaAdapter(StreamingAdapter):
    """Adapter for a local Ollama server. Takes no credential."""

    provider_name = "ollama"
    endpoint = "api/chat"

    def __init__(self, model: str, **kwargs: Any):
        kwargs.pop("api_key", None)
        kwargs.pop("base_url", None)
        super().__init__(model, **kwargs)

    @staticmethod
    def _convert_message(msg: ChatMessage) -> dict:
        converted: dict[str, Any] = {"role": msg.role, "content": msg.text()}
        images = msg.images()
        if images:
            converted["images"] = [image.base64_data for image in images]
        return converted

    def _build_request(self, messages: list[ChatMessage]) -> tuple[dict, dict, dict]:
        body = {
            "model": self.model,
            "messages": [self._convert_message(m) for m in messages],
            "stream": True,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        }
        return {}, {}, body

    async def _iter_events(self, response: httpx.Response) -> AsyncIterator[dict]:
        """Ollama streams newline-delimited JSON objects."""
        async for line in response.aiter_lines():
            line = line.strip()
            if not line:
                continue
            event = _decode_json(line, self.provider_name)
            yield event
            if event.get("done"):
                break

    def _parse_event(self, event: dict) -> tuple[str, Optional[str]]:
        error = _error_message(event)
        if error:
            raise UpstreamError(f"AI API Error: {error}")
        text = event.get("message", {}).get("content", "")
        reason = event.get("done_reason") if event.get("done") else None
        return text, reason
