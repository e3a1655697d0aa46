"""
AI Adapter module - Provider abstraction layer.

Supports multiple AI providers with streaming capability:
- OpenAI (and the compatible xAI Grok API)
- Anthropic Claude
- Google Gemini
- Ollama
"""
from chatrelay.services.adapter.provider import (
    AnthropicAdapter,
    GeminiAdapter,
    OllamaAdapter,
    OpenAICompatibleAdapter,
    StreamingAdapter,
)
from chatrelay.services.adapter.registry import AdapterRegistry, get_adapter

__all__ = [
    "StreamingAdapter",
    "OpenAICompatibleAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
    "OllamaAdapter",
    "AdapterRegistry",
    "get_adapter",
]
