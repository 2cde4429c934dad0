from sqlalchemy import Column, String, DateTime, JSON, func
from sqlalchemy.orm import relationship

from syncpay.models.base import Base


class Company(Base):
    __tablename__ = "companies"
    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    # {"address": "...", "taxId": "..."}
    billing_details = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    users = relationship("Users", back_populates="company")
    subscription = relationship("Subscription", back_populates="company", uselist=False)
    activity_logs = relationship("ActivityLog", back_populates="company")
