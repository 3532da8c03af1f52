"""Evidence read schemas."""

from pydantic import BaseModel


class EvidenceRoleCounts(BaseModel):
    creator: int = 0
    public: int = 0
