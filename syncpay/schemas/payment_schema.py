# syncpay/schemas/payment_schema.py
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, field_serializer


class CreateOrderRequest(BaseModel):
    plan_id: str
    billing_cycle: Literal["monthly", "yearly"] = "monthly"
    company_id: Optional[str] = None


class CreateOrderResponse(BaseModel):
    order_id: str
    amount: Decimal
    currency: str
    key_id: str

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal):
        # whole amounts go out as integers (500, 9590), anything else as a float
        if amount == amount.to_integral_value():
            return int(amount)
        return float(amount)


class VerifyPaymentRequest(BaseModel):
    order_id: str
    payment_id: str
    signature: str
    company_id: str
    plan_id: str


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    replayed: bool = False
    current_period_end: Optional[datetime] = None


class Payment(BaseModel):
    id: str
    company_id: str
    user_id: str
    plan_id: str
    amount: float
    currency: str
    billing_cycle: str
    gateway_order_id: str
    gateway_payment_id: Optional[str] = None
    status: str
    invoice_number: Optional[int] = None
    created_at: datetime
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentListResponse(BaseModel):
    items: list[Payment]
    total: int
    current_page: int
    total_pages: int
