# syncpay/schemas/subscription_schema.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SubscriptionStatus(BaseModel):
    plan_id: str
    plan_name: Optional[str] = None
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    days_until_renewal: Optional[int] = None
