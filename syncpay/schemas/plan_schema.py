# syncpay/schemas/plan_schema.py
from pydantic import BaseModel


class PlanPublic(BaseModel):
    id: str
    name: str
    monthly_price: float
    yearly_price: float
    currency: str
