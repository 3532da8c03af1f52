"""Settlement result schema."""

from pydantic import BaseModel


class SettlementSummary(BaseModel):
    event_id: str
    winning_option: str
    total_wagers: int = 0
    total_pool: float = 0.0
    commission: float = 0.0
    distribution_pool: float = 0.0
    winners_count: int = 0
    winners_pool: float = 0.0
    total_payout: float = 0.0
