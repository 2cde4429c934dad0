from syncpay.utils.helpers import utcnow
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from syncpay.models.base import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("ix_activity_logs_company_type", "company_id", "activity_type_category"),
        Index("ix_activity_logs_company_timestamp", "company_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    # e.g. "Billing/Order", "Billing/Audit", "Security/Signature"
    activity_type_category = Column(String, nullable=False)

    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)

    activity_description = Column(Text, nullable=False)

    user = relationship("Users", back_populates="activity_logs")
    company = relationship("Company", back_populates="activity_logs")
