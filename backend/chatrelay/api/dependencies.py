"""
FastAPI dependencies for the chat routers.
"""
from typing import Optional

from fastapi import Depends

from chatrelay.core.config import settings
from chatrelay.core.database import get_session_factory
from chatrelay.services.adapter.registry import AdapterRegistry
from chatrelay.services.chat.service import ChatService
from chatrelay.services.chat.store import ChatStore

_CHAT_STORE: Optional[ChatStore] = None


def get_chat_store() -> ChatStore:
    """Return the process-wide store, creating it on first use."""
    global _CHAT_STORE
    if _CHAT_STORE is None:
        _CHAT_STORE = ChatStore(get_session_factory())
    return _CHAT_STORE


def get_adapter_registry() -> AdapterRegistry:
    return AdapterRegistry(settings)


def get_chat_service(
    store: ChatStore = Depends(get_chat_store),
    registry: AdapterRegistry = Depends(get_adapter_registry),
) -> ChatService:
    return ChatService(store, registry, settings)
