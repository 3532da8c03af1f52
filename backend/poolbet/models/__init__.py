"""SQLAlchemy ORM models."""

from poolbet.models.user import User
from poolbet.models.wallet import Wallet
from poolbet.models.event import Event
from poolbet.models.wager import Wager
from poolbet.models.evidence import Evidence
from poolbet.models.ledger_entry import LedgerEntry
from poolbet.models.audit_log import AuditLog

__all__ = [
    "User",
    "Wallet",
    "Event",
    "Wager",
    "Evidence",
    "LedgerEntry",
    "AuditLog",
]
