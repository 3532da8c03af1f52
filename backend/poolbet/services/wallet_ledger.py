"""Wallet ledger — the only code that writes wallet balances.

Each wallet holds two balances:
    available  funds the user can stake or withdraw
    committed  funds locked against open wagers

The primitives below (commit, release, forfeit, release_and_credit, credit)
run inside the caller's transaction and never commit or retry; the caller
owns the unit of work. deposit and withdraw are the external funding
boundary and commit on their own. Every mutation appends a LedgerEntry.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from poolbet.config import settings
from poolbet.errors import InsufficientFunds, InvalidAmount, InvariantViolation, WalletNotFound
from poolbet.models.ledger_entry import LedgerEntry
from poolbet.models.wallet import Wallet
from poolbet.schemas.wallet import WalletBalance

logger = logging.getLogger(__name__)


def _get_wallet(db: Session, user_id: str) -> Wallet:
    wallet = db.query(Wallet).filter(Wallet.user_id == user_id).with_for_update().first()
    if not wallet:
        raise WalletNotFound(f"Wallet not found for user {user_id}")
    return wallet


def _require_finite(amount: float, label: str = "Amount") -> None:
    if amount is None or not math.isfinite(amount):
        raise InvalidAmount(f"{label} must be a finite number, got {amount}")


def _require_positive(amount: float) -> None:
    _require_finite(amount)
    if amount <= 0:
        raise InvalidAmount(f"Amount must be positive, got {amount}")


def _take_committed(wallet: Wallet, amount: float) -> None:
    """Remove `amount` from committed funds, tolerating float residue."""
    if wallet.committed + settings.BALANCE_EPSILON < amount:
        logger.error(
            "Committed balance underflow on wallet %s: committed=%s release=%s",
            wallet.id, wallet.committed, amount,
        )
        raise InvariantViolation(
            f"Cannot release {amount} from wallet {wallet.id}: only {wallet.committed} committed"
        )
    remaining = wallet.committed - amount
    wallet.committed = remaining if remaining > settings.BALANCE_EPSILON else 0.0


def _record(
    db: Session,
    wallet: Wallet,
    entry_type: str,
    amount: float,
    description: str,
    event_id: Optional[str] = None,
    wager_id: Optional[str] = None,
) -> LedgerEntry:
    wallet.updated_at = datetime.now(timezone.utc)
    entry = LedgerEntry(
        user_id=wallet.user_id,
        wallet_id=wallet.id,
        entry_type=entry_type,
        amount=amount,
        available_after=wallet.available,
        committed_after=wallet.committed,
        description=description,
        event_id=event_id,
        wager_id=wager_id,
    )
    db.add(entry)
    return entry


def open_wallet(db: Session, user_id: str, initial_balance: float = 0.0) -> Wallet:
    """Create the wallet for a freshly created user (caller commits)."""
    _require_finite(initial_balance, "Initial balance")
    if initial_balance < 0:
        raise InvalidAmount("Initial balance cannot be negative")
    wallet = Wallet(user_id=user_id, available=0.0, committed=0.0)
    db.add(wallet)
    db.flush()
    if initial_balance > 0:
        wallet.available = initial_balance
        _record(db, wallet, "deposit", initial_balance, "Opening balance")
    return wallet


def commit(
    db: Session,
    user_id: str,
    amount: float,
    *,
    event_id: Optional[str] = None,
    wager_id: Optional[str] = None,
) -> LedgerEntry:
    """Move `amount` from available to committed.

    Raises:
        InsufficientFunds: If available < amount.
    """
    _require_positive(amount)
    wallet = _get_wallet(db, user_id)
    if wallet.available < amount:
        raise InsufficientFunds(
            f"Insufficient balance: available {wallet.available:.2f}, required {amount:.2f}"
        )
    wallet.available -= amount
    wallet.committed += amount
    return _record(db, wallet, "commit", -amount, "Stake committed", event_id, wager_id)


def release(
    db: Session,
    user_id: str,
    amount: float,
    *,
    event_id: Optional[str] = None,
    wager_id: Optional[str] = None,
) -> LedgerEntry:
    """Move `amount` from committed back to available."""
    _require_positive(amount)
    wallet = _get_wallet(db, user_id)
    _take_committed(wallet, amount)
    wallet.available += amount
    return _record(db, wallet, "release", amount, "Stake released", event_id, wager_id)


def forfeit(
    db: Session,
    user_id: str,
    amount: float,
    *,
    event_id: Optional[str] = None,
    wager_id: Optional[str] = None,
) -> LedgerEntry:
    """Drop a losing stake from committed without returning it to available."""
    _require_positive(amount)
    wallet = _get_wallet(db, user_id)
    _take_committed(wallet, amount)
    return _record(db, wallet, "loss", 0.0, f"Stake of {amount:.2f} lost", event_id, wager_id)


def release_and_credit(
    db: Session,
    user_id: str,
    committed_amount: float,
    credit_amount: float,
    *,
    entry_type: str = "win",
    event_id: Optional[str] = None,
    wager_id: Optional[str] = None,
) -> LedgerEntry:
    """Release a committed stake and credit `credit_amount` in one step.

    Used for winners (credit = payout) and refunds (credit = stake).
    """
    _require_positive(committed_amount)
    _require_finite(credit_amount, "Credit amount")
    if credit_amount < 0:
        raise InvalidAmount(f"Credit amount cannot be negative, got {credit_amount}")
    wallet = _get_wallet(db, user_id)
    _take_committed(wallet, committed_amount)
    wallet.available += credit_amount
    description = (
        f"Stake of {committed_amount:.2f} refunded"
        if entry_type == "refund"
        else f"Stake of {committed_amount:.2f} paid out {credit_amount:.2f}"
    )
    return _record(db, wallet, entry_type, credit_amount, description, event_id, wager_id)


def credit(
    db: Session,
    user_id: str,
    amount: float,
    *,
    entry_type: str = "commission",
    description: str = "Curator commission",
    event_id: Optional[str] = None,
) -> LedgerEntry:
    """Add newly created value (commission) to available funds."""
    _require_positive(amount)
    wallet = _get_wallet(db, user_id)
    wallet.available += amount
    return _record(db, wallet, entry_type, amount, description, event_id)


def deposit(db: Session, user_id: str, amount: float) -> WalletBalance:
    """Fund a wallet from outside the system."""
    _require_positive(amount)
    try:
        wallet = _get_wallet(db, user_id)
        wallet.available += amount
        _record(db, wallet, "deposit", amount, "Deposit")
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deposited %.2f to user %s", amount, user_id)
    return get_balance(db, user_id)


def withdraw(db: Session, user_id: str, amount: float) -> WalletBalance:
    """Pay funds out of a wallet; committed funds are never withdrawable."""
    _require_positive(amount)
    try:
        wallet = _get_wallet(db, user_id)
        if wallet.available < amount:
            raise InsufficientFunds(
                f"Insufficient balance: available {wallet.available:.2f}, requested {amount:.2f}"
            )
        wallet.available -= amount
        _record(db, wallet, "withdraw", -amount, "Withdrawal")
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Withdrew %.2f from user %s", amount, user_id)
    return get_balance(db, user_id)


def get_balance(db: Session, user_id: str) -> WalletBalance:
    wallet = db.query(Wallet).filter(Wallet.user_id == user_id).first()
    if not wallet:
        raise WalletNotFound(f"Wallet not found for user {user_id}")
    return WalletBalance(
        user_id=user_id,
        available=wallet.available,
        committed=wallet.committed,
        total=wallet.available + wallet.committed,
    )


def list_entries(db: Session, user_id: str) -> list[LedgerEntry]:
    """Journal entries for a user, oldest first."""
    return (
        db.query(LedgerEntry)
        .filter(LedgerEntry.user_id == user_id)
        .order_by(LedgerEntry.created_at.asc())
        .all()
    )
