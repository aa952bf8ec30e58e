from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import User
from ..repositories.user import UserRepository


class UserService:
    def __init__(self, db: AsyncSession):
        self.repository = UserRepository(db)

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.repository.get(user_id)

    async def get_or_create_default_user(self) -> User:
        return await self.repository.get_or_create_default_user()

    async def create_user(self, username: str, **profile) -> User:
        return await self.repository.create(username=username, **profile)

    async def get_by_username(self, username: str) -> Optional[User]:
        return await self.repository.get_by_username(username)
