"""
Chat Store - durable storage for chats and their turns.

Every write opens its own session and commits on its own: there is no
transaction spanning several calls.
"""
import uuid
from typing import List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatrelay.core.logging import get_logger
from chatrelay.models.chat import Chat, Message, utcnow

logger = get_logger(__name__)

SEARCH_RESULT_LIMIT = 20


class ChatStore:
    """Chat and message persistence over SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_chat(self, title: Optional[str] = None) -> Chat:
        async with self._session_factory() as session:
            chat = Chat(title=title or "New Chat")
            session.add(chat)
            await session.commit()
            await session.refresh(chat)

        logger.info("Created chat", chat_id=str(chat.id))
        return chat

    async def get_chat(self, chat_id: uuid.UUID) -> Optional[Chat]:
        async with self._session_factory() as session:
            return await session.get(Chat, chat_id)

    async def list_chats(self) -> List[Chat]:
        """All chats, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Chat).order_by(Chat.created_at.desc())
            )
            return list(result.scalars().all())

    async def list_messages(self, chat_id: uuid.UUID) -> List[Message]:
        """Turns of a chat in creation order."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Message)
                .where(Message.chat_id == chat_id)
                .order_by(Message.created_at.asc())
            )
            return list(result.scalars().all())

    async def add_message(self, chat_id: uuid.UUID, role: str, content: str) -> Message:
        """
        Insert one turn.

        Args:
            chat_id: Owning chat
            role: "user" or "assistant"
            content: Plain text content

        Returns:
            Created Message record
        """
        async with self._session_factory() as session:
            message = Message(chat_id=chat_id, role=role, content=content)
            session.add(message)
            chat = await session.get(Chat, chat_id)
            if chat is not None:
                chat.updated_at = utcnow()
            await session.commit()
            await session.refresh(message)

        logger.debug(
            "Stored message",
            chat_id=str(chat_id),
            message_id=str(message.id),
            role=role,
            content_length=len(content),
        )
        return message

    async def update_title(self, chat_id: uuid.UUID, title: str) -> Optional[Chat]:
        async with self._session_factory() as session:
            chat = await session.get(Chat, chat_id)
            if chat is None:
                return None
            chat.title = title
            chat.updated_at = utcnow()
            await session.commit()
            await session.refresh(chat)
            return chat

    async def toggle_pin(self, chat_id: uuid.UUID) -> Optional[Chat]:
        async with self._session_factory() as session:
            chat = await session.get(Chat, chat_id)
            if chat is None:
                return None
            chat.is_pinned = not chat.is_pinned
            chat.updated_at = utcnow()
            await session.commit()
            await session.refresh(chat)
            return chat

    async def delete_chat(self, chat_id: uuid.UUID) -> bool:
        """Delete a chat together with all of its messages."""
        async with self._session_factory() as session:
            await session.execute(delete(Message).where(Message.chat_id == chat_id))
            result = await session.execute(delete(Chat).where(Chat.id == chat_id))
            await session.commit()

        deleted = result.rowcount > 0
        logger.info("Deleted chat", chat_id=str(chat_id), deleted=deleted)
        return deleted

    async def search(self, query: str, limit: int = SEARCH_RESULT_LIMIT) -> List[dict]:
        """
        Find chats whose title or any message contains the query.

        Case-insensitive substring match; each result carries the first
        matching message content, if any.
        """
        term = query.strip().lower()
        if not term:
            return []

        title_match = func.lower(Chat.title).contains(term, autoescape=True)
        content_match = func.lower(Message.content).contains(term, autoescape=True)

        async with self._session_factory() as session:
            chats = (await session.execute(
                select(Chat)
                .where(or_(
                    title_match,
                    Chat.id.in_(select(Message.chat_id).where(content_match)),
                ))
                .order_by(Chat.created_at.desc())
                .limit(limit)
            )).scalars().all()

            if not chats:
                return []

            matched = (await session.execute(
                select(Message)
                .where(Message.chat_id.in_([c.id for c in chats]), content_match)
                .order_by(Message.created_at.asc())
            )).scalars().all()

        first_match: dict[uuid.UUID, str] = {}
        for message in matched:
            first_match.setdefault(message.chat_id, message.content)

        return [
            {
                "chatId": str(chat.id),
                "chatTitle": chat.title,
                "matchedContent": first_match.get(chat.id),
            }
            for chat in chats
        ]
