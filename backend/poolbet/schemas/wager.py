"""Pool statistics schemas."""

from pydantic import BaseModel


class OptionStats(BaseModel):
    wagers: int
    amount: float
    odds: float


class WagerStats(BaseModel):
    event_id: str
    total_wagers: int
    total_amount: float
    by_option: dict[str, OptionStats]  # only options that have been backed
