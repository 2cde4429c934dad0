from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.models.user_model import Users
from syncpay.repository.base_repository import BaseRepository


class UserRepository(BaseRepository[Users]):
    def __init__(self):
        super().__init__(Users)

    async def get_user(self, db: AsyncSession, user_id: str) -> Optional[Users]:
        return await self.get(db, user_id)


user_repository = UserRepository()
