"""
Draft model: one authored post and its publishing lifecycle.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from ..database import Base


class DraftStatus:
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    PARTIALLY_PUBLISHED = "partially_published"
    FAILED = "failed"

    ALL = (DRAFT, SCHEDULED, PUBLISHING, PUBLISHED, PARTIALLY_PUBLISHED, FAILED)
    TERMINAL = (PUBLISHED, PARTIALLY_PUBLISHED, FAILED)
    DISPATCHABLE = (DRAFT, SCHEDULED)
    LOCKED = (PUBLISHING, PUBLISHED)  # content can no longer be edited


class Draft(Base):
    __tablename__ = "social_drafts"

    id = Column(Integer, primary_key=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    text_content = Column(Text, nullable=True)
    media_urls = Column(JSON, default=list)
    link_url = Column(String(1000), nullable=True)
    target_platforms = Column(JSON, default=list)
    target_accounts = Column(JSON, default=list)  # Connection ids
    scheduled_at = Column(DateTime, nullable=True, index=True)
    status = Column(String(30), default=DraftStatus.DRAFT, nullable=False, index=True)
    published_at = Column(DateTime, nullable=True)
    upload_job_ref = Column(String(255), nullable=True)
    upstream_state = Column(String(30), nullable=True)  # last overall state reported by Upload-Post
    reconciled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    author = relationship("User", back_populates="drafts")
    results = relationship(
        "PublishResult",
        back_populates="draft",
        cascade="all, delete-orphan",
        order_by="PublishResult.id",
    )
