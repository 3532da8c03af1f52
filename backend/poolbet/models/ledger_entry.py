"""Ledger entry model — append-only journal of every wallet mutation."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship

from poolbet.database import Base

ENTRY_TYPES = ("deposit", "withdraw", "commit", "release", "win", "loss", "refund", "commission")


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    wallet_id = Column(String(36), ForeignKey("wallets.id"), nullable=False)
    entry_type = Column(String(20), nullable=False)
    # Signed change to the available balance
    amount = Column(Float, nullable=False)
    available_after = Column(Float, nullable=False)
    committed_after = Column(Float, nullable=False)
    description = Column(Text, nullable=False)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=True)
    wager_id = Column(String(36), ForeignKey("wagers.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_ledger_entries_user_created", "user_id", "created_at"),
    )

    # Relationships
    wallet = relationship("Wallet", back_populates="entries")
