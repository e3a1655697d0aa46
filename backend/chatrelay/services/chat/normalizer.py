"""
Message normalizer.

Turns the prior turns of a chat plus a newly submitted user turn into the
exact message list handed to a provider adapter. Performs no I/O.
"""
from typing import Optional, Sequence

from chatrelay.core.exceptions import (
    EmptyMessageError,
    InvalidAttachmentError,
    UnsupportedAttachmentError,
)
from chatrelay.services.catalog import ProviderModel
from chatrelay.services.chat.messages import (
    AttachedFile,
    ChatMessage,
    ContentPart,
    ImagePart,
    TextPart,
    parse_data_uri,
)


def validate_attachments(
    attachments: Sequence[AttachedFile],
    model: ProviderModel,
) -> None:
    """Reject attachments the selected model cannot accept."""
    if not attachments:
        return
    if not model.supports_vision:
        raise UnsupportedAttachmentError(model.provider_id, model.model_id)
    for attachment in attachments:
        mime_type, _ = parse_data_uri(attachment.data)
        if not mime_type.startswith("image/"):
            raise InvalidAttachmentError(
                f"Attachment '{attachment.name}' is not an image ({mime_type})"
            )


def normalize_turn(
    history: Sequence[ChatMessage],
    user_text: str,
    attachments: Optional[Sequence[AttachedFile]],
    model: ProviderModel,
) -> list[ChatMessage]:
    """
    Build the outgoing message list for one submission.

    Without attachments every turn is sent as plain text. With attachments
    (on a vision model) every turn is sent as a list of content parts: prior
    turns as a single text part, the new turn as its text followed by one
    image part per attachment in submission order. Empty turns are dropped
    in both modes.

    Raises:
        EmptyMessageError: user_text is blank
        UnsupportedAttachmentError: attachments on a model without vision
        InvalidAttachmentError: an attachment is not an inline image
    """
    if not user_text or not user_text.strip():
        raise EmptyMessageError("Message must not be empty")

    attachments = list(attachments or [])
    validate_attachments(attachments, model)

    if not attachments:
        messages = [ChatMessage(role=m.role, content=m.text()) for m in history]
        messages.append(ChatMessage(role="user", content=user_text))
    else:
        messages = [
            ChatMessage(role=m.role, content=[TextPart(text=m.text())])
            for m in history
            if m.text().strip()
        ]
        parts: list[ContentPart] = [TextPart(text=user_text)]
        parts.extend(ImagePart(source_url=a.data, detail="high") for a in attachments)
        messages.append(ChatMessage(role="user", content=parts))

    return drop_empty(messages)


def drop_empty(messages: Sequence[ChatMessage]) -> list[ChatMessage]:
    """Remove turns with blank text or no parts."""
    return [m for m in messages if not m.is_empty()]
