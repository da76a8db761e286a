"""
User account model
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime

from ..base import Base


class User(Base):
    """User account model"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Admin flag - checked server-side by require_admin
    is_admin = Column(Boolean, default=False, nullable=False, index=True)

    # Generation allowance; usage is tracked in usage_counters
    image_credits = Column(Integer, default=0, nullable=False)
    video_credits = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    usage = relationship("UsageCounter", back_populates="user", uselist=False, cascade="all, delete-orphan")
    history = relationship("ContentHistoryItem", back_populates="user", cascade="all, delete-orphan")
    payment_requests = relationship(
        "PaymentRequest",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="PaymentRequest.user_id",
    )
    api_keys = relationship("ApiKey", back_populates="user", cascade="all, delete-orphan")
