import math
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.exceptions import NotFoundError
from syncpay.models.payment_model import BillingCycle
from syncpay.modules.payment.pricing import compute_amount
from syncpay.repository.plan_repository import plan_repository
from syncpay.repository.subscription_repository import subscription_repository
from syncpay.schemas.plan_schema import PlanPublic
from syncpay.schemas.subscription_schema import SubscriptionStatus
from syncpay.utils.helpers import utcnow


class SubscriptionService:
    async def list_plans(self, db: AsyncSession, currency: str) -> List[PlanPublic]:
        plans = await plan_repository.list_active(db)
        return [
            PlanPublic(
                id=plan.id,
                name=plan.name,
                monthly_price=float(compute_amount(plan.monthly_price, BillingCycle.MONTHLY)),
                yearly_price=float(compute_amount(plan.monthly_price, BillingCycle.YEARLY)),
                currency=currency,
            )
            for plan in plans
        ]

    async def get_status(self, db: AsyncSession, company_id: Optional[str], now: Optional[datetime] = None) -> SubscriptionStatus:
        if not company_id:
            raise NotFoundError("Subscription not found")
        subscription = await subscription_repository.get_by_company(db, company_id)
        if not subscription:
            raise NotFoundError("Subscription not found")

        now = now or utcnow()
        days_until_renewal = None
        if subscription.current_period_end:
            remaining = (subscription.current_period_end - now).total_seconds() / 86400
            days_until_renewal = max(0, math.ceil(remaining))

        return SubscriptionStatus(
            plan_id=subscription.plan_id,
            plan_name=subscription.plan.name if subscription.plan else None,
            status=subscription.status,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            days_until_renewal=days_until_renewal,
        )


subscription_service = SubscriptionService()
