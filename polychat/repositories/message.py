from typing import List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .base import BaseRepository
from ..models import ChatSession, Message, utcnow


class MessageRepository(BaseRepository[Message]):
    def __init__(self, db: AsyncSession):
        super().__init__(Message, db)

    async def create(self, **kwargs) -> Message:
        """Insert a message and bump the owning session's updated_at"""
        message = Message(**kwargs)
        self.db.add(message)
        await self.db.execute(
            update(ChatSession)
            .where(ChatSession.id == message.session_id)
            .values(updated_at=utcnow())
        )
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def get_session_messages(self, session_id: str) -> List[Message]:
        """Get all messages for a session ordered by creation time"""
        result = await self.db.execute(
            select(Message)
            .where(Message.session_id == session_id)
            .order_by(Message.created_at.asc())
        )
        return list(result.scalars().all())
