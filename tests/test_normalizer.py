import pytest
from pydantic import ValidationError as PydanticValidationError

from chatrelay.core.exceptions import (
    EmptyMessageError,
    InvalidAttachmentError,
    UnsupportedAttachmentError,
)
from chatrelay.services.catalog import capabilities_for, resolve_model
from chatrelay.services.chat.messages import ChatMessage, ImagePart, TextPart
from chatrelay.services.chat.normalizer import normalize_turn

from fakes import JPEG_DATA_URI, PNG_DATA_URI, make_attachment

VISION_MODEL = resolve_model("openai", "gpt-4o-mini")
TEXT_MODEL = resolve_model("openai", "gpt-3.5-turbo")


def _history():
    return [
        ChatMessage(role="user", content="What is a haiku?"),
        ChatMessage(role="assistant", content="A short poem."),
        ChatMessage(role="user", content="   "),
        ChatMessage(role="assistant", content=""),
    ]


def test_plain_text_mode_without_attachments():
    messages = normalize_turn(_history(), "Write one", [], VISION_MODEL)

    assert [(m.role, m.content) for m in messages] == [
        ("user", "What is a haiku?"),
        ("assistant", "A short poem."),
        ("user", "Write one"),
    ]
    assert not any(m.is_multimodal for m in messages)


def test_part_history_is_flattened_to_text_in_plain_mode():
    history = [
        ChatMessage(
            role="user",
            content=[TextPart(text="Look"), ImagePart(source_url=PNG_DATA_URI), TextPart(text="here")],
        ),
        ChatMessage(role="assistant", content=[ImagePart(source_url=PNG_DATA_URI)]),
    ]

    messages = normalize_turn(history, "And now?", [], TEXT_MODEL)

    assert [(m.role, m.content) for m in messages] == [
        ("user", "Look\nhere"),
        ("user", "And now?"),
    ]


def test_multimodal_mode_encodes_every_turn_as_parts():
    attachments = [
        make_attachment("a.png", PNG_DATA_URI),
        make_attachment("b.jpg", JPEG_DATA_URI),
    ]
    messages = normalize_turn(_history(), "Describe these", attachments, VISION_MODEL)

    assert len(messages) == 3
    assert messages[0].content == [TextPart(text="What is a haiku?")]
    assert messages[1].content == [TextPart(text="A short poem.")]

    last = messages[-1]
    assert last.role == "user"
    assert last.content == [
        TextPart(text="Describe these"),
        ImagePart(source_url=PNG_DATA_URI, detail="high"),
        ImagePart(source_url=JPEG_DATA_URI, detail="high"),
    ]


def test_empty_turns_never_reach_output():
    for attachments in ([], [make_attachment()]):
        messages = normalize_turn(_history(), "next", attachments, VISION_MODEL)
        assert all(not m.is_empty() for m in messages)
        assert all(m.text().strip() for m in messages)


def test_attachment_on_text_only_model_is_rejected():
    with pytest.raises(UnsupportedAttachmentError) as exc_info:
        normalize_turn([], "Look", [make_attachment()], TEXT_MODEL)
    assert exc_info.value.model_id == "gpt-3.5-turbo"


def test_attachment_on_unknown_model_is_rejected():
    with pytest.raises(UnsupportedAttachmentError):
        normalize_turn([], "Look", [make_attachment()], capabilities_for("openai", "mystery"))


def test_text_only_model_accepts_plain_turns():
    messages = normalize_turn([], "Hello", None, TEXT_MODEL)
    assert messages == [ChatMessage(role="user", content="Hello")]


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_blank_user_text_is_rejected(text):
    with pytest.raises(EmptyMessageError):
        normalize_turn([], text, [], VISION_MODEL)


def test_non_image_payload_is_rejected():
    pdf = make_attachment("doc.png", "data:application/pdf;base64,JVBERi0xLjQ=", type="image/png")
    with pytest.raises(InvalidAttachmentError):
        normalize_turn([], "Read this", [pdf], VISION_MODEL)


def test_attached_file_wire_validation():
    with pytest.raises(PydanticValidationError):
        make_attachment("doc.pdf", "data:application/pdf;base64,JVBERi0xLjQ=")
    with pytest.raises(PydanticValidationError):
        make_attachment("raw.png", "https://example.com/raw.png", type="image/png")


def test_image_part_exposes_mime_and_payload():
    part = ImagePart(source_url=JPEG_DATA_URI)
    assert part.mime_type == "image/jpeg"
    assert part.base64_data == JPEG_DATA_URI.split(",", 1)[1]
