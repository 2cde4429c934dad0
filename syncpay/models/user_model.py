from sqlalchemy import Column, String, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship

from syncpay.models.base import Base


class Users(Base):
    """Read-only projection of the identity provider's users."""
    __tablename__ = "users"
    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    role = Column(String(50), nullable=False, default="member")
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())

    company = relationship("Company", back_populates="users")
    activity_logs = relationship("ActivityLog", back_populates="user")
