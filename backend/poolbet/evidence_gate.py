"""
Evidence gate: who may submit proof of outcome, and when.

The phase is a pure function of the clock and the event's dates:

    now <  stake_deadline                   -> "none"     nobody
    stake_deadline <= now < proof_deadline  -> "creator"  creator only
    now >= proof_deadline                   -> "public"   anyone but the creator

A creator who lets their window lapse is shut out of the public phase so the
outcome gets independent verification. Resolved or cancelled events accept
nothing. The phase stored on the event row is only a cache of this.
"""

from datetime import datetime
from typing import Literal

from poolbet.clock import as_utc
from poolbet.errors import CreatorWindowExpired, EventClosed, NotCreatorWindow, TooEarly
from poolbet.models.event import TERMINAL_STATUSES

Phase = Literal["none", "creator", "public"]


def evidence_phase(stake_deadline: datetime, proof_deadline: datetime, now: datetime) -> Phase:
    now = as_utc(now)
    if now < as_utc(stake_deadline):
        return "none"
    if now < as_utc(proof_deadline):
        return "creator"
    return "public"


def authorize_submission(
    *,
    status: str,
    creator_id: str,
    submitter_id: str,
    stake_deadline: datetime,
    proof_deadline: datetime,
    now: datetime,
) -> str:
    """Check a submitter against the current phase and return their role.

    Raises:
        EventClosed: The event is resolved or cancelled.
        TooEarly: Staking is still open.
        NotCreatorWindow: A non-creator tried to submit in the creator window.
        CreatorWindowExpired: The creator tried to submit in the public window.
    """
    if status in TERMINAL_STATUSES:
        raise EventClosed(f"Cannot submit evidence for a {status} event")

    phase = evidence_phase(stake_deadline, proof_deadline, now)

    if phase == "none":
        raise TooEarly("Evidence cannot be submitted before the stake deadline")

    is_creator = creator_id == submitter_id
    if phase == "creator":
        if not is_creator:
            raise NotCreatorWindow("Only the event creator can submit evidence during the creator window")
        return "creator"

    if is_creator:
        raise CreatorWindowExpired("The event creator missed the window to submit evidence")
    return "public"
