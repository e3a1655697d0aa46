"""
Error taxonomy for the chat pipeline.

Validation errors are raised before any provider call, configuration errors
are fatal for the request, upstream errors are raised by adapters mid-stream.
"""
from typing import Optional


class ChatRelayError(Exception):
    """Base class for all application errors."""


class ValidationError(ChatRelayError):
    """The submitted turn is rejected before dispatch."""


class EmptyMessageError(ValidationError):
    """The user text is empty or whitespace only."""


class UnsupportedAttachmentError(ValidationError):
    """Attachments were submitted for a model without vision support."""

    def __init__(self, provider_id: str, model_id: str):
        self.provider_id = provider_id
        self.model_id = model_id
        super().__init__(
            f"Model '{model_id}' of provider '{provider_id}' does not support images"
        )


class InvalidAttachmentError(ValidationError):
    """An attachment is not an inline image data URI."""


class ConfigurationError(ChatRelayError):
    """Process configuration is incomplete."""


class MissingCredentialError(ConfigurationError):
    """A provider requires an API key that is not configured."""

    def __init__(self, provider_id: str, env_var: str):
        self.provider_id = provider_id
        self.env_var = env_var
        super().__init__(
            f"API key not set for provider '{provider_id}'. "
            f"Set {env_var} or AI_API_KEY environment variable."
        )


class UpstreamError(ChatRelayError):
    """The provider failed or returned a malformed response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ChatNotFoundError(ChatRelayError):
    """The referenced chat does not exist."""

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        super().__init__(f"Chat {chat_id} not found")
