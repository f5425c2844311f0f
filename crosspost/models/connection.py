"""
Connection model: a platform account reachable through Upload-Post.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from ..database import Base

PERSONAL = "personal"
ORG = "org"
OWNERSHIPS = (PERSONAL, ORG)

# Placeholder platform recorded while an OAuth hand-off is in progress
PENDING_PLATFORM = "pending"


class Connection(Base):
    __tablename__ = "social_connections"
    __table_args__ = (
        UniqueConstraint("user_id", "platform", "ownership", name="uq_connection_user_platform_ownership"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    platform = Column(String(50), nullable=False)
    ownership = Column(String(20), nullable=False, default=PERSONAL)  # personal, org
    external_username = Column(String(255), nullable=True)  # Upload-Post profile username
    platform_username = Column(String(255), nullable=True)
    platform_user_id = Column(String(255), nullable=True)
    active = Column(Boolean, default=True, index=True)
    connected_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    last_successful_post_at = Column(DateTime, nullable=True)
    last_error_message = Column(Text, nullable=True)
    profile_data = Column(JSON, nullable=True)

    # Relationships
    user = relationship("User", back_populates="connections")
