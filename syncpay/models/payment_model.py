import uuid
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Index, func
from sqlalchemy.orm import relationship

from syncpay.utils.helpers import utcnow
from .base import Base


class PaymentStatus:
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class BillingCycle:
    MONTHLY = "monthly"
    YEARLY = "yearly"

    ALL = (MONTHLY, YEARLY)


class Payment(Base):
    """Ledger entry: one attempted charge and its outcome."""
    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_company_created", "company_id", "created_at"),
        Index("ix_payments_status_created", "status", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    plan_id = Column(String(36), ForeignKey("subscription_plans.id"), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    billing_cycle = Column(String(16), nullable=False, default=BillingCycle.MONTHLY)

    gateway_order_id = Column(String, nullable=False, unique=True)
    gateway_payment_id = Column(String, nullable=True)
    gateway_signature = Column(String, nullable=True)

    # pending -> success | pending -> failed
    status = Column(String(16), nullable=False, default=PaymentStatus.PENDING)
    invoice_number = Column(Integer, nullable=True, unique=True)

    created_at = Column(DateTime, default=utcnow, server_default=func.now(), nullable=False)
    paid_at = Column(DateTime, nullable=True)

    plan = relationship("Plan")
    company = relationship("Company")
    user = relationship("Users")
