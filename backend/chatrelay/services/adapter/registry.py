"""
Provider adapter registry.

Maps a provider identifier to a freshly constructed streaming adapter,
configured from an explicit Settings object.
"""
from typing import Callable, Optional

import httpx

from chatrelay.core.config import Settings, settings as default_settings
from chatrelay.core.exceptions import MissingCredentialError
from chatrelay.core.logging import get_logger
from chatrelay.services.adapter.provider import (
    AnthropicAdapter,
    GeminiAdapter,
    OllamaAdapter,
    OpenAICompatibleAdapter,
    StreamingAdapter,
)

logger = get_logger(__name__)

DEFAULT_PROVIDER = "openai"

# Environment variable holding each provider's credential
CREDENTIAL_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "grok": "XAI_API_KEY",
}

AdapterFactory = Callable[..., StreamingAdapter]


def _openai(model: str, **kwargs) -> StreamingAdapter:
    return OpenAICompatibleAdapter(model, provider_name="openai", **kwargs)


def _grok(model: str, **kwargs) -> StreamingAdapter:
    return OpenAICompatibleAdapter(model, provider_name="grok", **kwargs)


ADAPTER_FACTORIES: dict[str, AdapterFactory] = {
    "openai": _openai,
    "anthropic": AnthropicAdapter,
    "gemini": GeminiAdapter,
    "ollama": OllamaAdapter,
    "grok": _grok,
}


class AdapterRegistry:
    """Builds one adapter per request; holds no per-conversation state."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or default_settings
        self._transport = transport

    def resolve_provider(self, provider_id: Optional[str]) -> str:
        """Unrecognized provider ids fall back to the default provider."""
        provider = (provider_id or DEFAULT_PROVIDER).lower()
        if provider not in ADAPTER_FACTORIES:
            logger.info(
                "Unknown provider, using default",
                requested=provider_id,
                provider=DEFAULT_PROVIDER,
            )
            return DEFAULT_PROVIDER
        return provider

    def get_adapter(self, provider_id: Optional[str], model_id: str) -> StreamingAdapter:
        """
        Construct the adapter for a provider/model pair.

        Raises:
            MissingCredentialError: the provider needs an API key that is
                not configured
        """
        provider = self.resolve_provider(provider_id)
        kwargs = {
            "temperature": self.settings.AI_TEMPERATURE,
            "max_tokens": self.settings.AI_MAX_TOKENS,
            "timeout": self.settings.AI_STREAM_TIMEOUT,
            "transport": self._transport,
        }

        if provider in CREDENTIAL_ENV:
            api_key = self.settings.get_api_key(provider)
            if not api_key:
                raise MissingCredentialError(provider, CREDENTIAL_ENV[provider])
            kwargs["api_key"] = api_key
            kwargs["base_url"] = self.settings.get_base_url(provider)

        logger.info(
            "Initializing AI adapter",
            provider=provider,
            model=model_id,
            base_url_override=bool(kwargs.get("base_url")),
        )
        return ADAPTER_FACTORIES[provider](model_id, **kwargs)


def get_adapter(
    provider_id: Optional[str],
    model_id: str,
    settings: Optional[Settings] = None,
) -> StreamingAdapter:
    """Factory function to get an adapter for the given provider and model."""
    return AdapterRegistry(settings).get_adapter(provider_id, model_id)
