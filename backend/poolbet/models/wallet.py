"""Wallet model — available vs. committed funds, mutated only by the ledger."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from poolbet.database import Base


class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    available = Column(Float, nullable=False, default=0.0)
    committed = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint("available >= 0", name="ck_wallet_available_non_negative"),
        CheckConstraint("committed >= 0", name="ck_wallet_committed_non_negative"),
    )

    # Relationships
    user = relationship("User", back_populates="wallet")
    entries = relationship("LedgerEntry", back_populates="wallet")
