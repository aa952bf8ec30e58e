from typing import Any, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError
from ..models import ChatSession
from ..repositories.session import SessionRepository
from ..schemas import MessageResponse, SessionResponse, SessionWithMessagesResponse

DEFAULT_TITLE = "New Chat"


def derive_title(content: str, max_length: int = 50) -> str:
    """Title for a session taken from its first user message.

    >>> derive_title("x" * 60)[-3:]
    '...'
    """
    if len(content) <= max_length:
        return content
    return content[: max_length - 3] + "..."


class SessionService:
    def __init__(self, db: AsyncSession):
        self.repository = SessionRepository(db)

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        return await self.repository.get(session_id)

    async def get_session_with_messages(
        self, session_id: str
    ) -> Optional[SessionWithMessagesResponse]:
        found = await self.repository.get_session_with_messages(session_id)
        if found is None:
            return None
        session, messages = found
        return SessionWithMessagesResponse(
            **SessionResponse.model_validate(session).model_dump(),
            messages=[MessageResponse.model_validate(m) for m in messages],
        )

    async def get_user_sessions(self, user_id: str) -> List[ChatSession]:
        return await self.repository.get_user_sessions(user_id)

    async def create_session(
        self, user_id: str, provider: str, model: str, title: str = DEFAULT_TITLE
    ) -> ChatSession:
        return await self.repository.create(
            user_id=user_id, title=title, provider=provider, model=model
        )

    async def update_session(self, session_id: str, **fields: Any) -> ChatSession:
        session = await self.repository.get(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        return await self.repository.update_fields(session, **fields)

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and all of its messages"""
        return await self.repository.delete_with_messages(session_id)
