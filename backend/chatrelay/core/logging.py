"""
Structured logging configuration.
Designed for easy debugging without exposing sensitive data.
"""
import asyncio
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Generator

import structlog
from structlog.types import Processor

from chatrelay.core.config import Settings, settings as default_settings


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure structured logging for the application."""
    settings = settings or default_settings

    # Common processors
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.LOG_FORMAT == "json":
        # JSON format for production
        renderer = structlog.processors.JSONRenderer()
    else:
        # Console format for development
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure root logger
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def _truncate_content(content: str, max_length: int = 0) -> str:
    """Truncate content if max_length is set."""
    if max_length <= 0:
        return content
    if len(content) <= max_length:
        return content
    return content[:max_length] + f"... [truncated, total {len(content)} chars]"


def redact_data_uri(url: str, keep: int = 50) -> str:
    """Abbreviate an inline image so base64 payloads never reach the logs."""
    if not url.startswith("data:") or len(url) <= keep:
        return url
    return url[:keep] + "...[TRUNCATED]"


def flatten_content(content: Any) -> str:
    """
    Render message content as loggable text.

    Multimodal content (a list of text/image parts) is flattened with
    image sources abbreviated.
    """
    if isinstance(content, str):
        return content
    pieces = []
    for part in content or []:
        text = getattr(part, "text", None)
        if text is not None:
            pieces.append(text)
            continue
        source_url = getattr(part, "source_url", None)
        if source_url is not None:
            pieces.append(f"[image {redact_data_uri(source_url)}]")
    return "\n".join(pieces)



def _count_images(content: Any) -> int:
    if isinstance(content, str):
        return 0
    return sum(1 for part in content or [] if getattr(part, "source_url", None))


# ========================================
# Streaming AI call tracking
# ========================================

@dataclass
class StreamCallLog:
    """What one streaming call sent and received."""
    provider: str
    model: str
    endpoint: str
    call_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    started_at: float = field(default_factory=time.monotonic)

    message_roles: List[str] = field(default_factory=list)
    request_chars: int = 0
    image_count: int = 0

    chunk_count: int = 0
    response_chars: int = 0
    finish_reason: Optional[str] = None

    # completed, cancelled or failed
    outcome: str = "completed"
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class AIDebugLogger:
    """
    Logs one summary line per streaming AI call.

    With AI_DEBUG_LOG enabled, request messages and the final response text
    are also logged at debug level (truncated to AI_DEBUG_LOG_MAX_LENGTH).

    Usage:
        debug_logger = AIDebugLogger(logger)
        with debug_logger.track_call("openai", "gpt-4o") as call:
            call.add_messages(messages)
            async for chunk in stream:
                call.record_chunk(chunk.content)
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        settings: Optional[Settings] = None,
    ):
        settings = settings or default_settings
        self.logger = logger
        self.enabled = settings.AI_DEBUG_LOG
        self.max_length = settings.AI_DEBUG_LOG_MAX_LENGTH

    @contextmanager
    def track_call(
        self,
        provider: str,
        model: str,
        endpoint: str = "chat/completions"
    ) -> Generator["AICallTracker", None, None]:
        tracker = AICallTracker(
            self.logger,
            StreamCallLog(provider=provider, model=model, endpoint=endpoint),
            enabled=self.enabled,
            max_length=self.max_length,
        )
        if self.enabled:
            self.logger.debug("AI call started", **tracker.identity())
        try:
            yield tracker
        except (GeneratorExit, asyncio.CancelledError):
            # Consumer stopped reading; not an upstream failure
            tracker.log.outcome = "cancelled"
            raise
        except Exception as e:
            tracker.fail(e)
            raise
        finally:
            tracker.finish()


class AICallTracker:
    """Accumulates a StreamCallLog while a stream is consumed."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        log: StreamCallLog,
        enabled: bool = False,
        max_length: int = 0,
    ):
        self.logger = logger
        self.log = log
        self.enabled = enabled
        self.max_length = max_length
        self._last_content = ""

    def identity(self) -> dict:
        return {
            "call_id": self.log.call_id,
            "provider": self.log.provider,
            "model": self.log.model,
            "endpoint": self.log.endpoint,
        }

    def add_messages(self, messages: Iterable[Any]) -> None:
        """Record the outgoing messages (objects with role/content)."""
        for message in messages:
            role = getattr(message, "role", "unknown")
            content = getattr(message, "content", "")
            text = flatten_content(content)
            images = _count_images(content)

            self.log.message_roles.append(role)
            self.log.request_chars += len(text)
            self.log.image_count += images

            if self.enabled:
                self.logger.debug(
                    "AI request message",
                    call_id=self.log.call_id,
                    role=role,
                    content_length=len(text),
                    image_count=images,
                    content=_truncate_content(text, self.max_length),
                )

    def record_chunk(self, content: str) -> None:
        """Record a content snapshot received from the stream."""
        self.log.chunk_count += 1
        self.log.response_chars = len(content)
        self._last_content = content

    def set_finish_reason(self, reason: Optional[str]) -> None:
        self.log.finish_reason = reason

    def fail(self, error: BaseException) -> None:
        self.log.outcome = "failed"
        self.log.error_type = type(error).__name__
        self.log.error_message = str(error)

    def finish(self) -> None:
        """Emit the summary line for the call."""
        summary = self.identity()
        summary.update(
            duration_ms=round((time.monotonic() - self.log.started_at) * 1000, 2),
            chunk_count=self.log.chunk_count,
            response_chars=self.log.response_chars,
        )

        if self.log.outcome == "failed":
            self.logger.error(
                "AI call failed",
                error_type=self.log.error_type,
                error_message=self.log.error_message,
                **summary,
            )
            return

        if self.log.outcome == "cancelled":
            self.logger.info("AI call cancelled", **summary)
            return

        if self.enabled:
            self.logger.debug(
                "AI response content",
                call_id=self.log.call_id,
                content_length=self.log.response_chars,
                content=_truncate_content(self._last_content, self.max_length),
            )
        self.logger.info(
            "AI call completed",
            message_count=len(self.log.message_roles),
            message_roles=self.log.message_roles,
            image_count=self.log.image_count,
            request_chars=self.log.request_chars,
            finish_reason=self.log.finish_reason,
            **summary,
        )
