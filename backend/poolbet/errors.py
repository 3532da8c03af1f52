"""Typed engine errors.

Every user-facing failure is a PoolBetError with a stable ``kind`` string the
presentation layer maps to a status code. The families subclass ValueError
so callers that catch ValueError keep working.

InvariantViolation is deliberately outside the hierarchy: it signals a bug
in the engine, never a bad request.
"""


class PoolBetError(ValueError):
    kind = "error"


# ── Input validation ─────────────────────────────────────────────────────────


class InvalidInput(PoolBetError):
    kind = "invalid_input"


class InvalidOption(InvalidInput):
    kind = "invalid_option"


class BelowMinimum(InvalidInput):
    kind = "below_minimum"


class InvalidAmount(InvalidInput):
    kind = "invalid_amount"


class InvalidDates(InvalidInput):
    kind = "invalid_dates"


class InvalidEventData(InvalidInput):
    kind = "invalid_event_data"


class InvalidEvidence(InvalidInput):
    kind = "invalid_evidence"


class InvalidWinningOption(InvalidInput):
    kind = "invalid_winning_option"


# ── Missing records ──────────────────────────────────────────────────────────


class NotFound(PoolBetError):
    kind = "not_found"


class UserNotFound(NotFound):
    kind = "user_not_found"


class WalletNotFound(NotFound):
    kind = "wallet_not_found"


class EventNotFound(NotFound):
    kind = "event_not_found"


class WagerNotFound(NotFound):
    kind = "wager_not_found"


class EvidenceNotFound(NotFound):
    kind = "evidence_not_found"


# ── State conflicts ──────────────────────────────────────────────────────────


class StateConflict(PoolBetError):
    kind = "state_conflict"


class DuplicateUser(StateConflict):
    kind = "duplicate_user"


class NotAuthorized(StateConflict):
    kind = "not_authorized"


class EventNotOpen(StateConflict):
    kind = "event_not_open"


class StakeWindowClosed(StateConflict):
    kind = "stake_window_closed"


class InvalidTransition(StateConflict):
    kind = "invalid_transition"


class AlreadyTerminal(InvalidTransition):
    kind = "already_terminal"


class EventClosed(StateConflict):
    kind = "event_closed"


class TooEarly(StateConflict):
    kind = "too_early"


class NotCreatorWindow(StateConflict):
    kind = "not_creator_window"


class CreatorWindowExpired(StateConflict):
    kind = "creator_window_expired"


# ── Resources ────────────────────────────────────────────────────────────────


class InsufficientFunds(PoolBetError):
    kind = "insufficient_funds"


# ── Bugs ─────────────────────────────────────────────────────────────────────


class InvariantViolation(RuntimeError):
    kind = "internal_error"
