"""
Provider capability registry.

Static table of providers and their models with per-model capability flags.
Used by the message normalizer to decide between plain-text and multimodal
encoding, and exposed to clients for model selection.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProviderModel:
    """A model offered by a provider and what it can accept."""
    provider_id: str
    model_id: str
    name: str
    supports_vision: bool = False
    supports_document: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.model_id,
            "name": self.name,
            "supportsVision": self.supports_vision,
            "supportsPDF": self.supports_document,
        }


@dataclass(frozen=True)
class Provider:
    id: str
    name: str
    models: tuple[ProviderModel, ...]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "models": [m.to_dict() for m in self.models],
        }


def _models(provider_id: str, *entries: tuple) -> tuple[ProviderModel, ...]:
    return tuple(
        ProviderModel(provider_id, model_id, name, vision, document)
        for model_id, name, vision, document in entries
    )


AI_PROVIDERS: tuple[Provider, ...] = (
    Provider("openai", "OpenAI", _models(
        "openai",
        ("gpt-4o-mini", "GPT-4o Mini", True, False),
        ("gpt-4o", "GPT-4o", True, False),
        ("gpt-4-turbo", "GPT-4 Turbo", True, False),
        ("gpt-3.5-turbo", "GPT-3.5 Turbo", False, False),
    )),
    Provider("anthropic", "Anthropic", _models(
        "anthropic",
        ("claude-sonnet-4-5", "Claude Sonnet 4.5", True, True),
        ("claude-3-5-sonnet-latest", "Claude 3.5 Sonnet", True, True),
        ("claude-3-5-haiku-latest", "Claude 3.5 Haiku", True, False),
    )),
    Provider("gemini", "Google", _models(
        "gemini",
        ("gemini-pro", "Gemini Pro", True, True),
        ("gemini-2.5-flash", "Gemini 2.5 Flash", True, True),
    )),
    Provider("ollama", "Ollama", _models(
        "ollama",
        ("llama3.2", "Llama 3.2", False, False),
        ("llava", "LLaVA", True, False),
    )),
    Provider("grok", "xAI", _models(
        "grok",
        ("grok-3", "Grok 3", False, False),
        ("grok-2-vision-1212", "Grok 2 Vision", True, False),
    )),
)

_MODEL_INDEX: dict[tuple[str, str], ProviderModel] = {
    (model.provider_id, model.model_id): model
    for provider in AI_PROVIDERS
    for model in provider.models
}


def list_providers() -> tuple[Provider, ...]:
    return AI_PROVIDERS


def resolve_model(provider_id: str, model_id: str) -> Optional[ProviderModel]:
    """Look up a model, or None when the pair is not in the table."""
    return _MODEL_INDEX.get((provider_id, model_id))


def capabilities_for(provider_id: str, model_id: str) -> ProviderModel:
    """
    Resolve a model, falling back to a text-only entry for unknown models.
    """
    model = resolve_model(provider_id, model_id)
    if model is None:
        return ProviderModel(provider_id, model_id, model_id)
    return model
