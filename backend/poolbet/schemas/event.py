"""Event read schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class EventRead(BaseModel):
    id: str
    creator_id: str
    title: str
    description: str
    category: str
    stake_deadline: datetime
    proof_deadline: datetime
    resolution_due_by: datetime
    outcome_options: list[str]
    status: str
    evidence_phase: str
    winning_option: Optional[str] = None
    resolved_by_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_rationale: Optional[str] = None
    evidence_used_id: Optional[str] = None
    curator_commission: float = 0.0
    created_at: datetime

    class Config:
        from_attributes = True


class EventPage(BaseModel):
    items: list[EventRead]
    total: int
    page: int
    limit: int
