"""
Chats API endpoints.
"""
import json
from contextlib import aclosing
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from chatrelay.api.dependencies import get_chat_service, get_chat_store
from chatrelay.core.exceptions import (
    ChatNotFoundError,
    ConfigurationError,
    ValidationError,
)
from chatrelay.core.logging import get_logger
from chatrelay.services.chat.messages import AttachedFile
from chatrelay.services.chat.service import ChatService
from chatrelay.services.chat.store import ChatStore

logger = get_logger(__name__)
router = APIRouter()


# ========================================
# Request/Response Schemas
# ========================================

class CreateChatRequest(BaseModel):
    """Request to create a chat."""
    title: Optional[str] = Field(default=None, description="Initial title")


class UpdateChatRequest(BaseModel):
    """Request to rename a chat."""
    title: str = Field(..., min_length=1, max_length=255)


class AddMessageRequest(BaseModel):
    """A turn persisted by the client."""
    role: Literal["user", "assistant"]
    content: str


class AssistantMessageRequest(BaseModel):
    """A finished assistant turn persisted by the client."""
    content: str


class SubmitTurnRequest(BaseModel):
    """A user turn to stream a response for."""
    userText: str = Field(..., description="The user's message")
    attachments: list[AttachedFile] = Field(default=[], description="Inline images")
    providerId: Optional[str] = Field(default=None, description="Provider, default openai")
    modelId: Optional[str] = Field(default=None, description="Model, default gpt-4o-mini")


class ChatResponse(BaseModel):
    id: str
    title: str
    isPinned: bool
    createdAt: int
    updatedAt: int


class MessageResponse(BaseModel):
    id: str
    chatId: str
    role: str
    content: str
    createdAt: int


class ChatDetailResponse(BaseModel):
    chat: ChatResponse
    messages: list[MessageResponse]


class SearchResult(BaseModel):
    chatId: str
    chatTitle: str
    matchedContent: Optional[str] = None


class PinResponse(BaseModel):
    success: bool
    isPinned: bool


class DeleteResponse(BaseModel):
    success: bool


# ========================================
# API Endpoints
# ========================================

@router.get("", response_model=list[ChatResponse])
async def list_chats(store: ChatStore = Depends(get_chat_store)):
    """
    Get all chats, newest first.
    """
    chats = await store.list_chats()
    return [ChatResponse(**chat.to_dict()) for chat in chats]


@router.post("", response_model=ChatResponse, status_code=201)
async def create_chat(
    request: CreateChatRequest,
    store: ChatStore = Depends(get_chat_store),
):
    chat = await store.create_chat(request.title)
    return ChatResponse(**chat.to_dict())


@router.get("/search", response_model=list[SearchResult])
async def search_chats(
    q: str = Query(default="", description="Text to look for"),
    store: ChatStore = Depends(get_chat_store),
):
    """
    Search chat titles and message contents.
    """
    results = await store.search(q)
    return [SearchResult(**result) for result in results]


@router.get("/{chat_id}", response_model=ChatDetailResponse)
async def get_chat(
    chat_id: UUID,
    store: ChatStore = Depends(get_chat_store),
):
    """
    Get a chat with its messages in order.
    """
    chat = await store.get_chat(chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")

    messages = await store.list_messages(chat_id)
    return ChatDetailResponse(
        chat=ChatResponse(**chat.to_dict()),
        messages=[MessageResponse(**m.to_dict()) for m in messages],
    )


@router.patch("/{chat_id}", response_model=ChatResponse)
async def update_chat_title(
    chat_id: UUID,
    request: UpdateChatRequest,
    store: ChatStore = Depends(get_chat_store),
):
    chat = await store.update_title(chat_id, request.title)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return ChatResponse(**chat.to_dict())


@router.post("/{chat_id}/pin", response_model=PinResponse)
async def toggle_chat_pin(
    chat_id: UUID,
    store: ChatStore = Depends(get_chat_store),
):
    chat = await store.toggle_pin(chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return PinResponse(success=True, isPinned=chat.is_pinned)


@router.delete("/{chat_id}", response_model=DeleteResponse)
async def delete_chat(
    chat_id: UUID,
    store: ChatStore = Depends(get_chat_store),
):
    """
    Delete a chat and, with it, all of its messages.
    """
    deleted = await store.delete_chat(chat_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Chat not found")
    return DeleteResponse(success=True)


@router.post("/{chat_id}/messages", response_model=MessageResponse, status_code=201)
async def add_message(
    chat_id: UUID,
    request: AddMessageRequest,
    service: ChatService = Depends(get_chat_service),
):
    try:
        message = await service.add_message(chat_id, request.role, request.content)
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")
    return MessageResponse(**message.to_dict())


@router.post("/{chat_id}/messages/assistant", response_model=MessageResponse, status_code=201)
async def save_assistant_message(
    chat_id: UUID,
    request: AssistantMessageRequest,
    service: ChatService = Depends(get_chat_service),
):
    try:
        message = await service.save_assistant_message(chat_id, request.content)
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")
    return MessageResponse(**message.to_dict())


@router.post("/{chat_id}/stream")
async def stream_chat_response(
    chat_id: UUID,
    request: SubmitTurnRequest,
    service: ChatService = Depends(get_chat_service),
):
    """
    Submit a user turn and stream the assistant's response.

    Returns Server-Sent Events (SSE) stream. Each event carries the full
    response text so far; the stream ends with `data: [DONE]`.
    """
    try:
        turn = await service.prepare_turn(
            chat_id=chat_id,
            user_text=request.userText,
            attachments=request.attachments,
            provider_id=request.providerId,
            model_id=request.modelId,
        )
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")
    except ValidationError as e:
        logger.warning("Turn rejected", chat_id=str(chat_id), error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigurationError as e:
        logger.error("Provider not configured", chat_id=str(chat_id), error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    async def generate():
        try:
            async with aclosing(service.run_turn(turn)) as chunks:
                async for chunk in chunks:
                    yield f"data: {json.dumps(chunk.to_dict())}\n\n"

            yield "data: [DONE]\n\n"

        except Exception as e:
            logger.error("Streaming error", chat_id=str(chat_id), error=str(e))
            error = {"type": "error", "content": "Failed to save the conversation"}
            yield f"data: {json.dumps(error)}\n\n"

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )
