"""Evidence model — proof of outcome, immutable except for its endorsements."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship

from poolbet.database import Base

EVIDENCE_TYPES = ("link", "image", "document", "video", "text")
SUBMITTER_ROLES = ("creator", "public", "curator")


class Evidence(Base):
    __tablename__ = "evidence"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    submitted_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    submitter_role = Column(String(20), nullable=False)  # creator | public | curator
    evidence_type = Column(String(20), nullable=False)
    evidence_url = Column(String(2048), nullable=True)
    content = Column(Text, nullable=True)
    description = Column(String(500), nullable=False)
    supported_option = Column(String(255), nullable=False)
    likes_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_evidence_event_role", "event_id", "submitter_role"),
    )

    # Relationships
    event = relationship("Event", back_populates="evidence")
    submitted_by = relationship("User")
