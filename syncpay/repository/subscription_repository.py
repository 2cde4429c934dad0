from datetime import datetime
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload

from syncpay.models.subscription_model import Subscription, SubscriptionStatus
from syncpay.repository.base_repository import BaseRepository

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SubscriptionRepository(BaseRepository[Subscription]):
    def __init__(self):
        super().__init__(Subscription)

    def _insert(self, db: AsyncSession):
        dialect = db.get_bind().dialect.name
        try:
            return _INSERT_BY_DIALECT[dialect](Subscription)
        except KeyError:
            raise NotImplementedError(f"Atomic upsert is not supported on dialect '{dialect}'")

    async def get_by_company(self, db: AsyncSession, company_id: str, *, fresh: bool = False) -> Optional[Subscription]:
        stmt = select(Subscription).options(joinedload(Subscription.plan)).where(Subscription.company_id == company_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalars().first()

    async def upsert_active(
        self,
        db: AsyncSession,
        *,
        company_id: str,
        plan_id: str,
        period_start: datetime,
        period_end: datetime,
        payment_id: str,
    ) -> None:
        """Replaces the company's current period in one INSERT .. ON CONFLICT (company_id) statement."""
        stmt = self._insert(db).values(
            company_id=company_id,
            plan_id=plan_id,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=period_start,
            current_period_end=period_end,
            payment_id=payment_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Subscription.company_id],
            set_={
                "plan_id": stmt.excluded.plan_id,
                "status": stmt.excluded.status,
                "current_period_start": stmt.excluded.current_period_start,
                "current_period_end": stmt.excluded.current_period_end,
                "payment_id": stmt.excluded.payment_id,
                "updated_at": func.now(),
            },
        )
        await db.execute(stmt)

    async def insert_if_absent(
        self,
        db: AsyncSession,
        *,
        company_id: str,
        plan_id: str,
        period_start: datetime,
        period_end: datetime,
        payment_id: str,
    ) -> None:
        stmt = self._insert(db).values(
            company_id=company_id,
            plan_id=plan_id,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=period_start,
            current_period_end=period_end,
            payment_id=payment_id,
        )
        await db.execute(stmt.on_conflict_do_nothing(index_elements=[Subscription.company_id]))

    async def deactivate_expired(self, db: AsyncSession, now: datetime) -> int:
        stmt = (
            update(Subscription)
            .where(Subscription.status == SubscriptionStatus.ACTIVE, Subscription.current_period_end < now)
            .values(status=SubscriptionStatus.INACTIVE)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount


subscription_repository = SubscriptionRepository()
