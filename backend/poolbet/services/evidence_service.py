"""Evidence service — proof-of-outcome submissions, gated by evidence_gate."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from poolbet.clock import as_utc, utcnow
from poolbet.errors import EventClosed, EvidenceNotFound, InvalidEvidence, InvalidOption
from poolbet.evidence_gate import authorize_submission
from poolbet.locks import event_locks
from poolbet.models.event import Event
from poolbet.models.evidence import EVIDENCE_TYPES, Evidence
from poolbet.schemas.evidence import EvidenceRoleCounts
from poolbet.services.event_service import load_event, refresh_event
from poolbet.services.user_service import get_user

logger = logging.getLogger(__name__)


def _validate_payload(
    evidence_type: str,
    description: str,
    evidence_url: Optional[str],
    content: Optional[str],
) -> None:
    if evidence_type not in EVIDENCE_TYPES:
        raise InvalidEvidence(f"Evidence type must be one of: {', '.join(EVIDENCE_TYPES)}")
    if not 10 <= len(description) <= 500:
        raise InvalidEvidence("Description must be between 10 and 500 characters")
    if evidence_type == "text":
        if not content:
            raise InvalidEvidence("Content is required for text evidence")
    elif not evidence_url:
        raise InvalidEvidence("Evidence URL is required for non-text evidence")
    if content and len(content) > 2000:
        raise InvalidEvidence("Content cannot exceed 2000 characters")


def submit_evidence(
    db: Session,
    event_id: str,
    submitter_id: str,
    evidence_type: str,
    description: str,
    supported_option: str,
    evidence_url: Optional[str] = None,
    content: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Evidence:
    """Record proof of outcome for an event.

    The submitter's role (creator or public) is derived from the clock at
    submission time and stored on the record.
    """
    now = as_utc(now or utcnow())
    description = (description or "").strip()
    evidence_url = evidence_url.strip() if evidence_url else None
    content = content.strip() if content else None
    supported_option = (supported_option or "").strip()
    _validate_payload(evidence_type, description, evidence_url, content)
    get_user(db, submitter_id)

    with event_locks.hold(event_id):
        try:
            event = load_event(db, event_id, for_update=True)
            if supported_option not in event.outcome_options:
                raise InvalidOption(
                    f"Supported option must be one of: {', '.join(event.outcome_options)}"
                )
            # Refresh the cached phase before deciding
            refresh_event(db, event, now)
            role = authorize_submission(
                status=event.status,
                creator_id=event.creator_id,
                submitter_id=submitter_id,
                stake_deadline=event.stake_deadline,
                proof_deadline=event.proof_deadline,
                now=now,
            )
            evidence = Evidence(
                event_id=event_id,
                submitted_by_id=submitter_id,
                submitter_role=role,
                evidence_type=evidence_type,
                evidence_url=evidence_url,
                content=content,
                description=description,
                supported_option=supported_option,
                likes_count=0,
            )
            db.add(evidence)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(evidence)
    logger.info("Evidence %s submitted for event %s as %s", evidence.id, event_id, role)
    return evidence


def get_evidence(db: Session, evidence_id: str) -> Evidence:
    evidence = db.query(Evidence).filter(Evidence.id == evidence_id).first()
    if not evidence:
        raise EvidenceNotFound(f"Evidence {evidence_id} not found")
    return evidence


def list_event_evidence(db: Session, event_id: str) -> list[Evidence]:
    """All evidence for an event in submission order."""
    load_event(db, event_id)
    return (
        db.query(Evidence)
        .filter(Evidence.event_id == event_id)
        .order_by(Evidence.created_at.asc())
        .all()
    )


def count_evidence_by_role(db: Session, event_id: str) -> EvidenceRoleCounts:
    rows = (
        db.query(Evidence.submitter_role, func.count(Evidence.id))
        .filter(Evidence.event_id == event_id)
        .group_by(Evidence.submitter_role)
        .all()
    )
    counts = {role: count for role, count in rows}
    return EvidenceRoleCounts(creator=counts.get("creator", 0), public=counts.get("public", 0))


def endorse_evidence(db: Session, evidence_id: str) -> Evidence:
    """Add one endorsement. Endorsements close with the event."""
    evidence = get_evidence(db, evidence_id)
    event = db.query(Event).filter(Event.id == evidence.event_id).first()
    if event.is_terminal:
        raise EventClosed(f"Cannot endorse evidence on a {event.status} event")
    try:
        # Increment in SQL so concurrent endorsements are not lost
        db.query(Evidence).filter(Evidence.id == evidence_id).update(
            {Evidence.likes_count: Evidence.likes_count + 1},
            synchronize_session=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(evidence)
    return evidence
