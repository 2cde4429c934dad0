# syncpay/models/plan_model.py
from sqlalchemy import Column, String, Boolean, Numeric, Index, DateTime, func
from .base import Base

class Plan(Base):
    __tablename__ = 'subscription_plans'
    __table_args__ = (
        Index("ix_subscription_plans_is_active", "is_active"),
    )
    id = Column(String(36), primary_key=True)
    name = Column(String, unique=True, nullable=False)
    monthly_price = Column(Numeric(12, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
