"""
Provider-agnostic message representation shared by the normalizer,
the adapters and the stream multiplexer.
"""
import re
from dataclasses import dataclass
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from chatrelay.core.exceptions import InvalidAttachmentError

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def parse_data_uri(url: str) -> tuple[str, str]:
    """Split a base64 data URI into (mime_type, payload)."""
    match = _DATA_URI_RE.match(url)
    if not match:
        raise InvalidAttachmentError("Attachment data must be a base64 data URI")
    return match.group("mime"), match.group("data")


@dataclass(frozen=True)
class TextPart:
    text: str
    kind: Literal["text"] = "text"


@dataclass(frozen=True)
class ImagePart:
    """An inline image; source_url is a self-contained data URI."""
    source_url: str
    detail: str = "high"
    kind: Literal["image"] = "image"

    @property
    def mime_type(self) -> str:
        return parse_data_uri(self.source_url)[0]

    @property
    def base64_data(self) -> str:
        return parse_data_uri(self.source_url)[1]


ContentPart = Union[TextPart, ImagePart]


@dataclass
class ChatMessage:
    """Chat message structure. Content is a string or a list of parts."""
    role: str
    content: Union[str, list[ContentPart]]

    @property
    def is_multimodal(self) -> bool:
        return not isinstance(self.content, str)

    def is_empty(self) -> bool:
        if isinstance(self.content, str):
            return not self.content.strip()
        return len(self.content) == 0

    def text(self) -> str:
        """Concatenated text of the message, ignoring images."""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(p.text for p in self.content if isinstance(p, TextPart))

    def images(self) -> list[ImagePart]:
        if isinstance(self.content, str):
            return []
        return [p for p in self.content if isinstance(p, ImagePart)]


@dataclass(frozen=True)
class StreamChunk:
    """
    One element of a response stream.

    `content` carries the full text accumulated so far, not a delta:
    consumers replace their state with it on every chunk.
    """
    type: Literal["content", "done", "error"]
    content: str = ""
    finish_reason: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"type": self.type, "content": self.content}
        if self.finish_reason is not None:
            data["finishReason"] = self.finish_reason
        return data


class AttachedFile(BaseModel):
    """A file attached to a single submission. Never persisted."""
    id: str
    name: str
    type: str = Field(..., description="MIME type")
    size: int = Field(..., ge=0)
    data: str = Field(..., description="Base64 data URI")
    preview: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_image_type(cls, value: str) -> str:
        if not value.startswith("image/"):
            raise ValueError("Only image attachments are supported")
        return value

    @field_validator("data")
    @classmethod
    def validate_data_uri(cls, value: str) -> str:
        if not _DATA_URI_RE.match(value):
            raise ValueError("Attachment data must be a base64 data URI")
        return value
