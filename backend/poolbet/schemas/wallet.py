"""Wallet read schemas."""

from pydantic import BaseModel


class WalletBalance(BaseModel):
    user_id: str
    available: float
    committed: float
    total: float
