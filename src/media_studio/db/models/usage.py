"""
Per-user usage counter model
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from ..base import Base


class UsageCounter(Base):
    """Number of image/video generations a user has consumed"""
    __tablename__ = "usage_counters"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    image_count = Column(Integer, default=0, nullable=False)
    video_count = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("image_count >= 0", name="ck_usage_counters_image_count_non_negative"),
        CheckConstraint("video_count >= 0", name="ck_usage_counters_video_count_non_negative"),
    )

    # Relationships
    user = relationship("User", back_populates="usage")
