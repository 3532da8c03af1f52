"""Event service — creation, reads, and the lifecycle state machine.

    open ──(now >= stake_deadline)──> closed
    open | closed ──settle──> resolved      (settlement_service)
    open | closed ──cancel──> cancelled     (settlement_service)

The open -> closed step is not scheduled; every read path calls
refresh_event() so stale rows correct themselves. The evidence phase column
is refreshed the same way and is never trusted on its own.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from poolbet.clock import as_utc, utcnow
from poolbet.config import settings
from poolbet.errors import (
    EventNotFound,
    InvalidDates,
    InvalidEventData,
    InvalidTransition,
    NotAuthorized,
)
from poolbet.evidence_gate import evidence_phase
from poolbet.locks import event_locks
from poolbet.models.audit_log import AuditLog
from poolbet.models.event import CLOSED, EVENT_CATEGORIES, EVENT_STATUSES, OPEN, Event
from poolbet.schemas.event import EventPage, EventRead
from poolbet.services.user_service import get_user

logger = logging.getLogger(__name__)

SORT_OPTIONS = ("newest", "deadline", "title")


def proof_deadline_for(stake_deadline: datetime) -> datetime:
    return as_utc(stake_deadline) + timedelta(hours=settings.PROOF_GRACE_HOURS)


def validate_event_dates(stake_deadline: datetime, resolution_due_by: datetime, now: datetime) -> None:
    """Enforce the scheduling rules shared by creation and date updates.

    Raises:
        InvalidDates: If the stake deadline is too close or the resolution
            date does not come after it.
    """
    if stake_deadline is None or resolution_due_by is None:
        raise InvalidDates("Stake deadline and resolution date are required")
    stake_deadline = as_utc(stake_deadline)
    resolution_due_by = as_utc(resolution_due_by)
    earliest = as_utc(now) + timedelta(minutes=settings.MIN_STAKE_LEAD_MINUTES)
    if stake_deadline < earliest:
        raise InvalidDates(
            f"Stake deadline must be at least {settings.MIN_STAKE_LEAD_MINUTES} minutes from now"
        )
    if resolution_due_by <= stake_deadline:
        raise InvalidDates("Resolution date must be after the stake deadline")


def _clean_options(outcome_options: list[str]) -> list[str]:
    if not outcome_options:
        raise InvalidEventData("Outcome options must contain between 2 and 10 options")
    options = [o.strip() if isinstance(o, str) else "" for o in outcome_options]
    if any(not o for o in options):
        raise InvalidEventData("Outcome options cannot be blank")
    if len(set(options)) != len(options):
        raise InvalidEventData("Outcome options must be distinct")
    if not 2 <= len(options) <= 10:
        raise InvalidEventData("Outcome options must contain between 2 and 10 options")
    return options


def record_audit(
    db: Session,
    event: Event,
    action: str,
    actor_id: Optional[str],
    old_data: Optional[dict] = None,
    new_data: Optional[dict] = None,
) -> None:
    db.add(AuditLog(
        entity_type="event",
        entity_id=event.id,
        action=action,
        actor_id=actor_id,
        old_data=json.dumps(old_data, default=str) if old_data is not None else None,
        new_data=json.dumps(new_data, default=str) if new_data is not None else None,
    ))


def create_event(
    db: Session,
    creator_id: str,
    title: str,
    description: str,
    category: str,
    stake_deadline: datetime,
    resolution_due_by: datetime,
    outcome_options: list[str],
    now: Optional[datetime] = None,
) -> Event:
    """Create a new open event."""
    now = now or utcnow()
    title = (title or "").strip()
    description = (description or "").strip()

    if not 10 <= len(title) <= 200:
        raise InvalidEventData("Title must be between 10 and 200 characters")
    if not 20 <= len(description) <= 1000:
        raise InvalidEventData("Description must be between 20 and 1000 characters")
    if category not in EVENT_CATEGORIES:
        raise InvalidEventData(f"Category must be one of: {', '.join(EVENT_CATEGORIES)}")
    options = _clean_options(outcome_options)
    validate_event_dates(stake_deadline, resolution_due_by, now)
    get_user(db, creator_id)

    stake_deadline = as_utc(stake_deadline)
    event = Event(
        creator_id=creator_id,
        title=title,
        description=description,
        category=category,
        stake_deadline=stake_deadline,
        proof_deadline=proof_deadline_for(stake_deadline),
        resolution_due_by=as_utc(resolution_due_by),
        outcome_options=options,
        status=OPEN,
        evidence_phase="none",
    )
    try:
        db.add(event)
        db.flush()
        record_audit(db, event, "created", creator_id, new_data={
            "title": title,
            "category": category,
            "stake_deadline": stake_deadline,
            "outcome_options": options,
        })
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(event)
    logger.info("Event %s created by %s with %d options", event.id, creator_id, len(options))
    return event


def refresh_event(db: Session, event: Event, now: Optional[datetime] = None) -> bool:
    """Apply time-derived state to an event row. Returns True if anything changed.

    Does not commit; callers decide whether the correction is persisted now
    or as part of a larger unit of work.
    """
    now = as_utc(now or utcnow())
    changed = False

    if event.status == OPEN and now >= as_utc(event.stake_deadline):
        event.status = CLOSED
        event.updated_at = now
        record_audit(db, event, "closed", None, {"status": OPEN}, {"status": CLOSED})
        logger.info("Event %s closed for staking", event.id)
        changed = True

    phase = evidence_phase(event.stake_deadline, event.proof_deadline, now)
    if event.evidence_phase != phase:
        event.evidence_phase = phase
        changed = True

    return changed


def _is_stale(event: Event, now: datetime) -> bool:
    if event.status == OPEN and now >= as_utc(event.stake_deadline):
        return True
    return event.evidence_phase != evidence_phase(event.stake_deadline, event.proof_deadline, now)


def _refresh_and_persist(db: Session, events: list[Event], now: datetime) -> None:
    """Persist derived state for stale events, one event lock at a time.

    The row is re-read under the lock so a lazy close can never overwrite a
    settlement or cancellation that committed after the event was loaded.
    """
    for event in events:
        if not _is_stale(event, now):
            continue
        with event_locks.hold(event.id):
            db.refresh(event, with_for_update=True)
            try:
                if refresh_event(db, event, now):
                    db.commit()
                else:
                    db.rollback()
            except Exception:
                db.rollback()
                raise


def close_expired_events(db: Session, now: Optional[datetime] = None) -> int:
    """Close every open event whose stake deadline has passed."""
    now = as_utc(now or utcnow())
    stale = (
        db.query(Event)
        .filter(Event.status == OPEN, Event.stake_deadline <= now)
        .all()
    )
    _refresh_and_persist(db, stale, now)
    return len(stale)


def load_event(db: Session, event_id: str, for_update: bool = False) -> Event:
    """Fetch an event without applying derived state."""
    query = db.query(Event).filter(Event.id == event_id)
    if for_update:
        query = query.with_for_update()
    event = query.first()
    if not event:
        raise EventNotFound(f"Event {event_id} not found")
    return event


def get_event(db: Session, event_id: str, now: Optional[datetime] = None) -> Event:
    now = as_utc(now or utcnow())
    event = load_event(db, event_id)
    _refresh_and_persist(db, [event], now)
    return event


def list_events(
    db: Session,
    category: Optional[str] = None,
    status: Optional[str] = None,
    creator_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[Event]:
    """List events with optional filters, newest first."""
    now = as_utc(now or utcnow())
    if category and category not in EVENT_CATEGORIES:
        raise InvalidEventData(f"Category must be one of: {', '.join(EVENT_CATEGORIES)}")
    if status and status not in EVENT_STATUSES:
        raise InvalidEventData(f"Status must be one of: {', '.join(EVENT_STATUSES)}")

    close_expired_events(db, now)

    query = db.query(Event)
    if category:
        query = query.filter(Event.category == category)
    if status:
        query = query.filter(Event.status == status)
    if creator_id:
        query = query.filter(Event.creator_id == creator_id)
    events = query.order_by(Event.created_at.desc()).all()
    _refresh_and_persist(db, events, now)
    return events


def search_events(
    db: Session,
    text: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: str = "newest",
    page: int = 1,
    limit: int = 20,
    now: Optional[datetime] = None,
) -> EventPage:
    """Full-text-ish search over title and description with pagination."""
    now = as_utc(now or utcnow())
    if sort_by not in SORT_OPTIONS:
        raise InvalidEventData(f"sort_by must be one of: {', '.join(SORT_OPTIONS)}")
    if page < 1:
        raise InvalidEventData("Page must be 1 or greater")
    if not 1 <= limit <= 100:
        raise InvalidEventData("Limit must be between 1 and 100")
    if category and category not in EVENT_CATEGORIES:
        raise InvalidEventData(f"Category must be one of: {', '.join(EVENT_CATEGORIES)}")
    if status and status not in EVENT_STATUSES:
        raise InvalidEventData(f"Status must be one of: {', '.join(EVENT_STATUSES)}")

    close_expired_events(db, now)

    query = db.query(Event)
    if text:
        pattern = f"%{text.strip()}%"
        query = query.filter(or_(Event.title.ilike(pattern), Event.description.ilike(pattern)))
    if category:
        query = query.filter(Event.category == category)
    if status:
        query = query.filter(Event.status == status)

    total = query.count()
    if sort_by == "deadline":
        query = query.order_by(Event.stake_deadline.asc())
    elif sort_by == "title":
        query = query.order_by(Event.title.asc())
    else:
        query = query.order_by(Event.created_at.desc())

    events = query.offset((page - 1) * limit).limit(limit).all()
    _refresh_and_persist(db, events, now)
    return EventPage(
        items=[EventRead.model_validate(e) for e in events],
        total=total,
        page=page,
        limit=limit,
    )


def list_events_ready_for_curation(db: Session, now: Optional[datetime] = None) -> list[Event]:
    """Closed, unresolved events — the curator's work queue, oldest deadline first."""
    now = as_utc(now or utcnow())
    close_expired_events(db, now)
    events = (
        db.query(Event)
        .filter(Event.status == CLOSED)
        .order_by(Event.stake_deadline.asc())
        .all()
    )
    _refresh_and_persist(db, events, now)
    return events


def update_event_dates(
    db: Session,
    event_id: str,
    actor_id: str,
    stake_deadline: datetime,
    resolution_due_by: datetime,
    now: Optional[datetime] = None,
) -> Event:
    """Reschedule an open event. Only its creator or an admin may do this."""
    now = as_utc(now or utcnow())
    actor = get_user(db, actor_id)
    with event_locks.hold(event_id):
        try:
            event = load_event(db, event_id, for_update=True)
            refresh_event(db, event, now)
            if event.status != OPEN:
                raise InvalidTransition(f"Dates can only change while the event is open (status: {event.status})")
            if actor.id != event.creator_id and actor.role != "admin":
                raise NotAuthorized("Only the event creator or an admin can change its dates")
            validate_event_dates(stake_deadline, resolution_due_by, now)

            old_data = {
                "stake_deadline": event.stake_deadline,
                "resolution_due_by": event.resolution_due_by,
            }
            event.stake_deadline = as_utc(stake_deadline)
            event.proof_deadline = proof_deadline_for(stake_deadline)
            event.resolution_due_by = as_utc(resolution_due_by)
            event.evidence_phase = evidence_phase(event.stake_deadline, event.proof_deadline, now)
            event.updated_at = now
            record_audit(db, event, "dates_updated", actor_id, old_data, {
                "stake_deadline": event.stake_deadline,
                "resolution_due_by": event.resolution_due_by,
            })
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(event)
    logger.info("Event %s rescheduled by %s", event_id, actor_id)
    return event
