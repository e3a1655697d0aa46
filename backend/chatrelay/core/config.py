"""
Application configuration.
All sensitive values loaded from environment variables.
"""
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/chatrelay"

    # Default selection when a submission names no provider/model
    DEFAULT_PROVIDER: str = "openai"
    DEFAULT_MODEL: str = "gpt-4o-mini"

    # Generic API key, used when a provider-specific key is not set
    AI_API_KEY: str = ""
    AI_TEMPERATURE: float = 0.7
    AI_MAX_TOKENS: int = 4096
    # Read timeout for upstream streams in seconds (None = wait indefinitely)
    AI_STREAM_TIMEOUT: Optional[float] = None

    # Provider-specific API keys and base URL overrides
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_BASE_URL: Optional[str] = None
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_BASE_URL: Optional[str] = None
    XAI_API_KEY: Optional[str] = None
    XAI_BASE_URL: Optional[str] = None

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or console

    # AI Debug Logging - enables detailed message content logging
    # WARNING: Set to True only for debugging, logs may contain sensitive data
    AI_DEBUG_LOG: bool = False
    # Maximum length of message content to log (0 = unlimited)
    AI_DEBUG_LOG_MAX_LENGTH: int = 2000

    def get_api_key(self, provider: str) -> str:
        """Get API key for a specific provider."""
        provider_keys = {
            "openai": self.OPENAI_API_KEY,
            "anthropic": self.ANTHROPIC_API_KEY,
            "gemini": self.GEMINI_API_KEY,
            "grok": self.XAI_API_KEY,
        }
        # Return provider-specific key if set, otherwise fall back to AI_API_KEY
        return provider_keys.get(provider.lower()) or self.AI_API_KEY

    def get_base_url(self, provider: str) -> Optional[str]:
        """Get the base URL override for a provider, if any."""
        overrides = {
            "openai": self.OPENAI_BASE_URL,
            "anthropic": self.ANTHROPIC_BASE_URL,
            "gemini": self.GEMINI_BASE_URL,
            "grok": self.XAI_BASE_URL,
        }
        return overrides.get(provider.lower())

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
