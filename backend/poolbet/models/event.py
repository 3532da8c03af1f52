"""Event model — one market with its scheduling fields and lifecycle status."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship

from poolbet.database import Base

EVENT_CATEGORIES = ("sports", "politics", "entertainment", "economy", "other")

OPEN = "open"
CLOSED = "closed"
RESOLVED = "resolved"
CANCELLED = "cancelled"

EVENT_STATUSES = (OPEN, CLOSED, RESOLVED, CANCELLED)
TERMINAL_STATUSES = (RESOLVED, CANCELLED)


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    creator_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(20), nullable=False, index=True)
    stake_deadline = Column(DateTime, nullable=False, index=True)
    proof_deadline = Column(DateTime, nullable=False)
    resolution_due_by = Column(DateTime, nullable=False)
    outcome_options = Column(JSON, nullable=False)  # ordered list of labels
    status = Column(String(20), nullable=False, default=OPEN, index=True)
    evidence_phase = Column(String(20), nullable=False, default="none")  # cache: none | creator | public
    winning_option = Column(String(255), nullable=True)
    resolved_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolution_rationale = Column(Text, nullable=True)
    evidence_used_id = Column(String(36), nullable=True)  # evidence.id the curator relied on
    curator_commission = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    creator = relationship("User", foreign_keys=[creator_id])
    resolved_by = relationship("User", foreign_keys=[resolved_by_id])
    wagers = relationship("Wager", back_populates="event")
    evidence = relationship("Evidence", back_populates="event")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
