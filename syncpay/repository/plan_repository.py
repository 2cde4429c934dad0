from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from syncpay.models.plan_model import Plan
from syncpay.repository.base_repository import BaseRepository


class PlanRepository(BaseRepository[Plan]):
    def __init__(self):
        super().__init__(Plan)

    async def get_plan(self, db: AsyncSession, plan_id: str) -> Optional[Plan]:
        return await self.get(db, plan_id)

    async def list_active(self, db: AsyncSession) -> List[Plan]:
        stmt = select(Plan).where(Plan.is_active.is_(True)).order_by(Plan.monthly_price.asc())
        result = await db.execute(stmt)
        return result.scalars().all()


plan_repository = PlanRepository()
