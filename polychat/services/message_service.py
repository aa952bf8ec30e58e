from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Message, MessageRole
from ..repositories.message import MessageRepository


class MessageService:
    def __init__(self, db: AsyncSession):
        self.repository = MessageRepository(db)

    async def create_message(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        provider: str,
        model: str,
        tokens_used: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> Message:
        """Create a new message; messages are never edited afterwards"""
        extra = {"created_at": created_at} if created_at is not None else {}
        return await self.repository.create(
            session_id=session_id,
            role=MessageRole(role),
            content=content,
            provider=provider,
            model=model,
            tokens_used=tokens_used,
            message_metadata=metadata,
            **extra,
        )

    async def get_message(self, message_id: str) -> Optional[Message]:
        return await self.repository.get(message_id)

    async def get_session_messages(self, session_id: str) -> List[Message]:
        """Get all messages for a session"""
        return await self.repository.get_session_messages(session_id)

    async def delete_message(self, message_id: str) -> bool:
        message = await self.repository.get(message_id)
        if message is None:
            return False
        await self.repository.delete(message)
        return True

    @staticmethod
    def to_history(messages: List[Message]) -> List[Dict[str, str]]:
        """Role/content pairs in the shape providers consume"""
        return [
            {"role": MessageRole(m.role).value, "content": m.content} for m in messages
        ]
