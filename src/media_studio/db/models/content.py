"""
Generated content history model
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Text, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from ..base import Base


class ContentType(str, enum.Enum):
    """Kind of generated artifact"""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


class ContentHistoryItem(Base):
    """A completed generation; rows are never updated after insert"""
    __tablename__ = "content_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content_type = Column(String, nullable=False, index=True)
    content_url = Column(String, nullable=False)
    prompt = Column(Text, nullable=True)
    is_public = Column(Boolean, default=False, nullable=False, index=True)
    # "metadata" is reserved on declarative classes
    extra_metadata = Column("metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    user = relationship("User", back_populates="history")

    __table_args__ = (
        Index("idx_content_history_user_created", "user_id", "created_at"),
        Index("idx_content_history_public_created", "is_public", "created_at"),
    )
