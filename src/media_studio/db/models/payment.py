"""
Credit package and offline payment request models
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Numeric, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from ..base import Base


class PaymentStatus(str, enum.Enum):
    """Payment request status enum; APPROVED and REJECTED are terminal"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CreditPackage(Base):
    """A purchasable bundle of image/video credits"""
    __tablename__ = "credit_packages"

    id = Column(String, primary_key=True)  # slug, e.g. "images-starter"
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="KS")
    image_credits = Column(Integer, nullable=False, default=0)
    video_credits = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class PaymentRequest(Base):
    """User claim of an offline payment, waiting for admin review"""
    __tablename__ = "payment_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    package_id = Column(String, ForeignKey("credit_packages.id"), nullable=False)
    reference_id = Column(String(16), nullable=False, unique=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_method = Column(String, nullable=False, default="bank_transfer")
    contact_email = Column(String, nullable=False)
    screenshot_url = Column(String, nullable=True)
    # Credits are copied from the package so later package edits don't change what was bought
    image_credits = Column(Integer, nullable=False, default=0)
    video_credits = Column(Integer, nullable=False, default=0)
    payment_details = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    status = Column(String, nullable=False, default=PaymentStatus.PENDING.value, index=True)
    resolved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="payment_requests", foreign_keys=[user_id])
    package = relationship("CreditPackage")
