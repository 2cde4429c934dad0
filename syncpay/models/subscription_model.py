# syncpay/models/subscription_model.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship

from .base import Base


class SubscriptionStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"


class Subscription(Base):
    """Overwritable projection of what a company is currently entitled to."""
    __tablename__ = 'subscriptions'
    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(36), ForeignKey('companies.id'), nullable=False, unique=True)
    plan_id = Column(String(36), ForeignKey('subscription_plans.id'), nullable=False)

    status = Column(String(16), default=SubscriptionStatus.INACTIVE, nullable=False)

    current_period_start = Column(DateTime)
    current_period_end = Column(DateTime)
    # ledger entry this period was derived from
    payment_id = Column(String(36), ForeignKey('payments.id'), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="subscription")
    plan = relationship("Plan")
