"""
PublishResult model: per-platform outcome of one dispatch attempt.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from ..database import Base


class PublishResult(Base):
    __tablename__ = "social_publish_results"

    id = Column(Integer, primary_key=True, index=True)
    draft_id = Column(Integer, ForeignKey("social_drafts.id", ondelete="CASCADE"), nullable=False, index=True)
    platform = Column(String(50), nullable=False)
    account_id = Column(Integer, ForeignKey("social_connections.id", ondelete="SET NULL"), nullable=True)
    attempt = Column(Integer, nullable=False, default=1)
    success = Column(Boolean, nullable=False, default=False)
    platform_post_id = Column(String(255), nullable=True)
    platform_post_url = Column(String(1000), nullable=True)
    error_message = Column(Text, nullable=True)
    raw_response = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    draft = relationship("Draft", back_populates="results")
