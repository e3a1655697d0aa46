from chatrelay.models.chat import Chat, Message

__all__ = [
    "Chat",
    "Message",
]
