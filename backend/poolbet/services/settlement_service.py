"""Settlement service — resolving and cancelling events.

Both operations rewrite every wager of an event and move money for every
bettor, so each runs as one transaction under the event lock. If anything
fails part-way the session is rolled back: no payout, commission or status
change from that call survives, and the event can simply be settled again.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from poolbet.clock import as_utc, utcnow
from poolbet.config import settings
from poolbet.errors import AlreadyTerminal, InvalidEvidence, InvalidWinningOption, PoolBetError
from poolbet.locks import event_locks
from poolbet.models.event import CANCELLED, RESOLVED, Event
from poolbet.models.evidence import Evidence
from poolbet.models.wager import Wager
from poolbet.schemas.settlement import SettlementSummary
from poolbet.services import wallet_ledger
from poolbet.services.event_service import load_event, record_audit, refresh_event
from poolbet.services.user_service import require_role

logger = logging.getLogger(__name__)

CURATOR_ROLES = ("curator", "admin")


def _ensure_not_terminal(event: Event, action: str) -> None:
    if event.status == RESOLVED:
        raise AlreadyTerminal(f"Cannot {action}: event is already resolved")
    if event.status == CANCELLED:
        raise AlreadyTerminal(f"Cannot {action}: event is cancelled")


def _mark_settled(wager: Wager, won: Optional[bool], payout: float, now: datetime) -> None:
    wager.settled = True
    wager.won = won
    wager.actual_payout = payout
    wager.settled_at = now


def settle_event(
    db: Session,
    event_id: str,
    winning_option: str,
    curator_id: str,
    evidence_id: Optional[str] = None,
    rationale: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SettlementSummary:
    """Resolve an event and settle all of its wagers.

    Parimutuel distribution with curator commission:
    1. Validate the event can still be resolved and the option is valid
    2. Mark the event resolved with the curator's decision
    3. Load every wager; with none, commit and return a zero summary
    4. Split wagers into winners and losers and total both pools
    5. Take the commission off the top and credit it to the curator
    6. No winners: refund every stake in full
    7. Otherwise pay winners pro rata from the distribution pool and
       forfeit the losing stakes
    """
    now = as_utc(now or utcnow())
    curator = require_role(db, curator_id, CURATOR_ROLES)

    with event_locks.hold(event_id):
        try:
            # 1. Validate
            event = load_event(db, event_id, for_update=True)
            _ensure_not_terminal(event, "resolve")
            if winning_option not in event.outcome_options:
                raise InvalidWinningOption(
                    f"Invalid winning option. Valid options: {', '.join(event.outcome_options)}"
                )
            if evidence_id is not None:
                evidence = db.query(Evidence).filter(Evidence.id == evidence_id).first()
                if not evidence or evidence.event_id != event_id:
                    raise InvalidEvidence(f"Evidence {evidence_id} does not belong to event {event_id}")

            # 2. Resolve
            refresh_event(db, event, now)
            old_status = event.status
            event.status = RESOLVED
            event.winning_option = winning_option
            event.resolved_by_id = curator.id
            event.resolved_at = now
            event.resolution_rationale = rationale
            event.evidence_used_id = evidence_id
            event.updated_at = now

            # 3. Load wagers
            wagers = (
                db.query(Wager)
                .filter(Wager.event_id == event_id)
                .order_by(Wager.created_at.asc())
                .with_for_update()
                .all()
            )
            summary = SettlementSummary(event_id=event_id, winning_option=winning_option)

            if wagers:
                # 4. Partition
                winners = [w for w in wagers if w.selected_option == winning_option]
                losers = [w for w in wagers if w.selected_option != winning_option]
                total_pool = sum(w.amount for w in wagers)
                winners_pool = sum(w.amount for w in winners)

                # 5. Commission
                commission = total_pool * settings.COMMISSION_RATE
                distribution_pool = total_pool - commission
                if commission > 0:
                    wallet_ledger.credit(
                        db, curator.id, commission,
                        description=f"Curator commission for event {event_id}",
                        event_id=event_id,
                    )
                event.curator_commission = commission

                total_payout = 0.0
                if not winners:
                    # 6. Nobody backed the outcome: refund everyone
                    for wager in losers:
                        wallet_ledger.release_and_credit(
                            db, wager.user_id, wager.amount, wager.amount,
                            entry_type="refund", event_id=event_id, wager_id=wager.id,
                        )
                        _mark_settled(wager, False, wager.amount, now)
                        total_payout += wager.amount
                else:
                    # 7. Pro-rata payout to winners, losing stakes fund it
                    for wager in winners:
                        payout = (wager.amount / winners_pool) * distribution_pool
                        wallet_ledger.release_and_credit(
                            db, wager.user_id, wager.amount, payout,
                            entry_type="win", event_id=event_id, wager_id=wager.id,
                        )
                        _mark_settled(wager, True, payout, now)
                        total_payout += payout
                    for wager in losers:
                        wallet_ledger.forfeit(
                            db, wager.user_id, wager.amount,
                            event_id=event_id, wager_id=wager.id,
                        )
                        _mark_settled(wager, False, 0.0, now)

                summary = SettlementSummary(
                    event_id=event_id,
                    winning_option=winning_option,
                    total_wagers=len(wagers),
                    total_pool=total_pool,
                    commission=commission,
                    distribution_pool=distribution_pool,
                    winners_count=len(winners),
                    winners_pool=winners_pool,
                    total_payout=total_payout,
                )

            record_audit(db, event, "resolved", curator.id, {"status": old_status}, {
                "status": RESOLVED,
                "winning_option": winning_option,
                "evidence_used_id": evidence_id,
                "total_pool": summary.total_pool,
                "commission": summary.commission,
            })
            db.commit()
        except PoolBetError:
            db.rollback()
            raise
        except Exception:
            db.rollback()
            logger.exception("Settlement of event %s rolled back", event_id)
            raise
    event_locks.discard(event_id)

    logger.info(
        "Event %s resolved to %r by %s: pool=%.2f commission=%.4f winners=%d payout=%.4f",
        event_id, winning_option, curator.id, summary.total_pool, summary.commission,
        summary.winners_count, summary.total_payout,
    )
    return summary


def cancel_event(
    db: Session,
    event_id: str,
    actor_id: str,
    now: Optional[datetime] = None,
) -> Event:
    """Cancel an event and refund every unsettled stake in full. No commission."""
    now = as_utc(now or utcnow())
    actor = require_role(db, actor_id, CURATOR_ROLES)

    with event_locks.hold(event_id):
        try:
            event = load_event(db, event_id, for_update=True)
            _ensure_not_terminal(event, "cancel")
            refresh_event(db, event, now)
            old_status = event.status

            wagers = (
                db.query(Wager)
                .filter(Wager.event_id == event_id, Wager.settled.is_(False))
                .with_for_update()
                .all()
            )
            refunded = 0.0
            for wager in wagers:
                wallet_ledger.release_and_credit(
                    db, wager.user_id, wager.amount, wager.amount,
                    entry_type="refund", event_id=event_id, wager_id=wager.id,
                )
                _mark_settled(wager, None, wager.amount, now)
                refunded += wager.amount

            event.status = CANCELLED
            event.updated_at = now
            record_audit(db, event, "cancelled", actor.id, {"status": old_status}, {
                "status": CANCELLED,
                "refunded_wagers": len(wagers),
                "refunded_amount": refunded,
            })
            db.commit()
        except PoolBetError:
            db.rollback()
            raise
        except Exception:
            db.rollback()
            logger.exception("Cancellation of event %s rolled back", event_id)
            raise
    event_locks.discard(event_id)

    db.refresh(event)
    logger.info("Event %s cancelled by %s: %d wagers refunded (%.2f)", event_id, actor.id, len(wagers), refunded)
    return event
