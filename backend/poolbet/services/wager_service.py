"""Wager service — pricing and placing stakes against an event's pool."""

import logging
import math
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from poolbet import odds as odds_engine
from poolbet.clock import as_utc, utcnow
from poolbet.config import settings
from poolbet.errors import (
    BelowMinimum,
    EventNotOpen,
    InvalidOption,
    StakeWindowClosed,
    WagerNotFound,
)
from poolbet.locks import event_locks
from poolbet.models.event import OPEN
from poolbet.models.wager import Wager
from poolbet.schemas.wager import OptionStats, WagerStats
from poolbet.services import wallet_ledger
from poolbet.services.event_service import load_event, refresh_event
from poolbet.services.user_service import get_user

logger = logging.getLogger(__name__)


def pool_by_option(db: Session, event_id: str) -> dict[str, tuple[int, float]]:
    """Aggregate every wager of an event: option -> (count, amount).

    Settled wagers stay in the pool; settlement never removes them.
    """
    rows = (
        db.query(
            Wager.selected_option,
            func.count(Wager.id),
            func.coalesce(func.sum(Wager.amount), 0.0),
        )
        .filter(Wager.event_id == event_id)
        .group_by(Wager.selected_option)
        .all()
    )
    return {option: (count, float(amount)) for option, count, amount in rows}


def get_event_wager_stats(db: Session, event_id: str) -> WagerStats:
    """Pool totals and current odds per backed option."""
    load_event(db, event_id)
    pools = pool_by_option(db, event_id)
    current_odds = odds_engine.odds_by_option({o: amount for o, (_, amount) in pools.items()})
    return WagerStats(
        event_id=event_id,
        total_wagers=sum(count for count, _ in pools.values()),
        total_amount=sum(amount for _, amount in pools.values()),
        by_option={
            option: OptionStats(wagers=count, amount=amount, odds=current_odds[option])
            for option, (count, amount) in pools.items()
        },
    )


def place_wager(
    db: Session,
    user_id: str,
    event_id: str,
    option: str,
    amount: float,
    now: Optional[datetime] = None,
) -> Wager:
    """Place a stake on one option of an open event.

    Steps (all under the event lock, in one transaction):
    1. Validate event is open and staking hasn't closed
    2. Validate option and minimum amount
    3. Aggregate the pool and price the wager including its own stake
    4. Commit the stake in the wallet ledger
    5. Insert the wager with its locked odds
    """
    now = as_utc(now or utcnow())
    get_user(db, user_id)

    with event_locks.hold(event_id):
        try:
            event = load_event(db, event_id, for_update=True)

            if event.is_terminal:
                raise EventNotOpen(f"Event is {event.status}, staking is closed")
            if refresh_event(db, event, now):
                # Persist the lazy close even though the wager is rejected
                db.commit()
            # A stored "closed" status only ever comes from the deadline passing
            if event.status != OPEN or now >= as_utc(event.stake_deadline):
                raise StakeWindowClosed("The stake deadline has passed")

            if option not in event.outcome_options:
                raise InvalidOption(f"Invalid option. Valid options: {', '.join(event.outcome_options)}")
            if amount is None or not math.isfinite(amount) or amount < settings.MIN_WAGER_AMOUNT:
                raise BelowMinimum(f"Minimum wager amount is {settings.MIN_WAGER_AMOUNT}")

            pools = pool_by_option(db, event_id)
            total_pool = sum(a for _, a in pools.values())
            option_pool = pools.get(option, (0, 0.0))[1]
            locked_odds = odds_engine.price_new_wager(total_pool, option_pool, amount)

            entry = wallet_ledger.commit(db, user_id, amount, event_id=event_id)
            db.flush()

            wager = Wager(
                event_id=event_id,
                user_id=user_id,
                selected_option=option,
                amount=amount,
                odds=locked_odds,
                potential_payout=amount * locked_odds,
                settled=False,
                won=None,
                actual_payout=0.0,
            )
            db.add(wager)
            db.flush()
            entry.wager_id = wager.id
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(wager)
    logger.info(
        "Wager %s: user %s staked %.2f on %r of event %s at %.4f",
        wager.id, user_id, amount, option, event_id, locked_odds,
    )
    return wager


def get_wager(db: Session, wager_id: str) -> Wager:
    wager = db.query(Wager).filter(Wager.id == wager_id).first()
    if not wager:
        raise WagerNotFound(f"Wager {wager_id} not found")
    return wager


def list_event_wagers(db: Session, event_id: str) -> list[Wager]:
    return (
        db.query(Wager)
        .filter(Wager.event_id == event_id)
        .order_by(Wager.created_at.desc())
        .all()
    )


def list_user_wagers(db: Session, user_id: str, settled: Optional[bool] = None) -> list[Wager]:
    query = db.query(Wager).filter(Wager.user_id == user_id)
    if settled is not None:
        query = query.filter(Wager.settled == settled)
    return query.order_by(Wager.created_at.desc()).all()
