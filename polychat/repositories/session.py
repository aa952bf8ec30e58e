from typing import Any, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .base import BaseRepository
from ..models import ChatSession, Message, utcnow


class SessionRepository(BaseRepository[ChatSession]):
    def __init__(self, db: AsyncSession):
        super().__init__(ChatSession, db)

    async def get_user_sessions(self, user_id: str) -> List[ChatSession]:
        """Get all sessions for a user, most recently updated first"""
        result = await self.db.execute(
            select(ChatSession)
            .where(ChatSession.user_id == user_id)
            .order_by(ChatSession.updated_at.desc())
        )
        return list(result.scalars().all())

    async def get_session_with_messages(
        self, session_id: str
    ) -> Optional[Tuple[ChatSession, List[Message]]]:
        """Get a session together with its messages in creation order"""
        session = await self.get(session_id)
        if session is None:
            return None
        result = await self.db.execute(
            select(Message)
            .where(Message.session_id == session_id)
            .order_by(Message.created_at.asc())
        )
        return session, list(result.scalars().all())

    async def update_fields(self, session: ChatSession, **fields: Any) -> ChatSession:
        """Merge the supplied fields and always refresh updated_at"""
        fields["updated_at"] = utcnow()
        return await self.update(session, **fields)

    async def delete_with_messages(self, session_id: str) -> bool:
        session = await self.get(session_id)
        if session is None:
            return False
        # Messages go first so none can outlive their session
        await self.db.execute(delete(Message).where(Message.session_id == session_id))
        await self.db.execute(delete(ChatSession).where(ChatSession.id == session_id))
        await self.db.commit()
        return True
