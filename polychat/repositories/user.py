import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .base import BaseRepository
from ..models import User

logger = logging.getLogger(__name__)

DEFAULT_USERNAME = "demo_user"
DEFAULT_USER_PROFILE = {
    "email": "demo@example.com",
    "first_name": "Demo",
    "last_name": "User",
    "profile_image_url": (
        "https://images.unsplash.com/photo-1472099645785-5658abf4ff4e"
        "?ixlib=rb-4.0.3&auto=format&fit=crop&w=40&h=40"
    ),
}


class UserRepository(BaseRepository[User]):
    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def get_or_create_default_user(self) -> User:
        user = await self.get_by_username(DEFAULT_USERNAME)
        if user:
            return user
        try:
            return await self.create(username=DEFAULT_USERNAME, **DEFAULT_USER_PROFILE)
        except IntegrityError:
            # Another request created it first
            await self.db.rollback()
            logger.info("Default user created concurrently, re-reading")
            user = await self.get_by_username(DEFAULT_USERNAME)
            if not user:
                raise
            return user
