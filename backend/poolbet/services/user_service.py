"""User service — provisions users together with their wallets."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from poolbet.config import settings
from poolbet.errors import DuplicateUser, InvalidInput, NotAuthorized, UserNotFound
from poolbet.models.user import User
from poolbet.services import wallet_ledger

logger = logging.getLogger(__name__)

USER_ROLES = ("user", "curator", "admin")


def create_user(
    db: Session,
    username: str,
    email: str,
    role: str = "user",
    initial_balance: Optional[float] = None,
) -> User:
    """Create a user and then their wallet, in one transaction.

    If opening the wallet fails the user row is rolled back with it, so a
    user never exists without a wallet.
    """
    if role not in USER_ROLES:
        raise InvalidInput(f"Role must be one of: {', '.join(USER_ROLES)}")
    if not username or not username.strip():
        raise InvalidInput("Username is required")
    if not email or "@" not in email:
        raise InvalidInput("A valid email is required")
    username = username.strip()
    email = email.strip().lower()

    existing = (
        db.query(User)
        .filter((User.username == username) | (User.email == email))
        .first()
    )
    if existing:
        raise DuplicateUser("A user with this username or email already exists")

    balance = settings.DEFAULT_STARTING_BALANCE if initial_balance is None else initial_balance
    try:
        user = User(username=username, email=email, role=role)
        db.add(user)
        db.flush()
        wallet_ledger.open_wallet(db, user.id, balance)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    logger.info("Created user %s (%s) with balance %.2f", user.id, role, balance)
    return user


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFound(f"User {user_id} not found")
    return user


def require_role(db: Session, user_id: str, roles: tuple[str, ...]) -> User:
    """Load a user and check they hold one of `roles`."""
    user = get_user(db, user_id)
    if user.role not in roles:
        raise NotAuthorized(f"User {user_id} must be one of: {', '.join(roles)}")
    return user
