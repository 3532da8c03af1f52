"""Wager model — a stake on one option, priced at placement, settled once."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Float, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from poolbet.database import Base


class Wager(Base):
    __tablename__ = "wagers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    selected_option = Column(String(255), nullable=False)
    amount = Column(Float, nullable=False)
    odds = Column(Float, nullable=False)
    potential_payout = Column(Float, nullable=False)  # informational only
    settled = Column(Boolean, nullable=False, default=False)
    won = Column(Boolean, nullable=True)
    actual_payout = Column(Float, nullable=False, default=0.0)
    settled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_wagers_event_option", "event_id", "selected_option"),
        Index("ix_wagers_user_settled", "user_id", "settled"),
    )

    # Relationships
    event = relationship("Event", back_populates="wagers")
    user = relationship("User", back_populates="wagers")
