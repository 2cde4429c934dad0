from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.models.company_model import Company
from syncpay.repository.base_repository import BaseRepository


class CompanyRepository(BaseRepository[Company]):
    def __init__(self):
        super().__init__(Company)

    async def get_company(self, db: AsyncSession, company_id: str) -> Optional[Company]:
        return await self.get(db, company_id)


company_repository = CompanyRepository()
