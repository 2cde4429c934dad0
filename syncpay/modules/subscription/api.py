from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.config import settings
from syncpay.core.dependencies import get_current_user, get_db
from syncpay.models.user_model import Users
from syncpay.modules.subscription.service import subscription_service
from syncpay.schemas.plan_schema import PlanPublic
from syncpay.schemas.subscription_schema import SubscriptionStatus

router = APIRouter()


@router.get("/plans", response_model=List[PlanPublic])
async def get_available_plans(
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.list_plans(db, currency=settings.BILLING_CURRENCY)


@router.get("/subscriptions/my-status", response_model=SubscriptionStatus)
async def get_my_subscription_status(
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.get_status(db, current_user.company_id)
