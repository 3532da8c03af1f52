"""Tests for resolving and cancelling events."""

import pytest

from conftest import CREATOR_WINDOW, STAKING, make_event
from poolbet.errors import AlreadyTerminal, InvalidEvidence, InvalidWinningOption, NotAuthorized
from poolbet.models.audit_log import AuditLog
from poolbet.models.event import Event
from poolbet.models.wager import Wager
from poolbet.services import evidence_service, settlement_service, wager_service, wallet_ledger


def _balance(db, user):
    b = wallet_ledger.get_balance(db, user.id)
    return b.available, b.committed


def _total_funds(db, users):
    return sum(sum(_balance(db, u)) for u in users.values())


def _bet(db, user, event, option, amount):
    return wager_service.place_wager(db, user.id, event.id, option, amount, now=STAKING)


class TestSettleEvent:
    """Parimutuel distribution with curator commission."""

    def test_even_two_sided_pool(self, db, users, event):
        """Worked example: 100 vs 100, resolved for A."""
        _bet(db, users["alice"], event, "A", 100.0)
        _bet(db, users["bob"], event, "B", 100.0)

        summary = settlement_service.settle_event(
            db, event.id, "A", users["curator"].id, now=CREATOR_WINDOW
        )

        assert summary.total_pool == pytest.approx(200.0)
        assert summary.commission == pytest.approx(1.0)
        assert summary.distribution_pool == pytest.approx(199.0)
        assert summary.winners_count == 1
        assert _balance(db, users["alice"]) == (pytest.approx(1099.0), 0.0)
        assert _balance(db, users["bob"]) == (pytest.approx(900.0), 0.0)
        assert _balance(db, users["curator"]) == (pytest.approx(1.0), 0.0)

    def test_event_records_the_decision(self, db, users, event):
        """The event keeps who resolved it, why, and the commission."""
        _bet(db, users["alice"], event, "A", 100.0)
        settlement_service.settle_event(
            db, event.id, "A", users["curator"].id,
            rationale="Official league result", now=CREATOR_WINDOW,
        )
        resolved = db.get(Event, event.id)
        assert resolved.status == "resolved"
        assert resolved.winning_option == "A"
        assert resolved.resolved_by_id == users["curator"].id
        assert resolved.resolution_rationale == "Official league result"
        assert resolved.curator_commission == pytest.approx(0.5)
        actions = [a.action for a in db.query(AuditLog).filter(AuditLog.entity_id == event.id)]
        assert "resolved" in actions

    def test_pro_rata_payouts(self, db, users, event):
        """Winners split the distribution pool by stake and funds are conserved."""
        before = _total_funds(db, users)
        alice = _bet(db, users["alice"], event, "A", 100.0)
        carol = _bet(db, users["carol"], event, "A", 300.0)
        bob = _bet(db, users["bob"], event, "B", 200.0)

        summary = settlement_service.settle_event(
            db, event.id, "A", users["curator"].id, now=CREATOR_WINDOW
        )

        assert summary.commission == pytest.approx(3.0)
        assert summary.winners_pool == pytest.approx(400.0)
        assert summary.total_payout == pytest.approx(597.0)
        db.expire_all()
        assert db.get(Wager, alice.id).actual_payout == pytest.approx(149.25)
        assert db.get(Wager, carol.id).actual_payout == pytest.approx(447.75)
        assert db.get(Wager, bob.id).won is False
        assert db.get(Wager, bob.id).actual_payout == 0.0
        # Commission is carved out of the pool, so nothing is created or lost
        assert _total_funds(db, users) == pytest.approx(before)

    def test_every_wager_is_settled(self, db, users, event):
        """Every wager is marked settled with won set."""
        _bet(db, users["alice"], event, "A", 10.0)
        _bet(db, users["bob"], event, "B", 10.0)
        settlement_service.settle_event(db, event.id, "B", users["admin"].id, now=CREATOR_WINDOW)
        wagers = wager_service.list_event_wagers(db, event.id)
        assert all(w.settled for w in wagers)
        assert {w.user_id: w.won for w in wagers} == {
            users["alice"].id: False,
            users["bob"].id: True,
        }

    def test_nobody_backed_the_outcome(self, db, users, event):
        """With no winners every stake is refunded and commission is still paid."""
        _bet(db, users["alice"], event, "A", 100.0)
        _bet(db, users["bob"], event, "A", 50.0)

        summary = settlement_service.settle_event(
            db, event.id, "B", users["curator"].id, now=CREATOR_WINDOW
        )

        assert summary.winners_count == 0
        assert summary.total_payout == pytest.approx(150.0)
        assert _balance(db, users["alice"]) == (pytest.approx(1000.0), 0.0)
        assert _balance(db, users["bob"]) == (pytest.approx(1000.0), 0.0)
        # Commission is still paid on top of the full refunds
        assert _balance(db, users["curator"]) == (pytest.approx(0.75), 0.0)
        for wager in wager_service.list_event_wagers(db, event.id):
            assert wager.won is False
            assert wager.actual_payout == wager.amount

    def test_no_wagers(self, db, users, event):
        """An event with no wagers resolves with a zero summary."""
        summary = settlement_service.settle_event(
            db, event.id, "A", users["curator"].id, now=CREATOR_WINDOW
        )
        assert summary.total_wagers == 0
        assert summary.commission == 0.0
        assert db.get(Event, event.id).status == "resolved"
        assert _balance(db, users["curator"]) == (0.0, 0.0)

    def test_settle_before_stake_deadline(self, db, users, event):
        """An open event can be resolved directly."""
        _bet(db, users["alice"], event, "A", 100.0)
        settlement_service.settle_event(db, event.id, "A", users["curator"].id, now=STAKING)
        assert db.get(Event, event.id).status == "resolved"

    def test_evidence_reference(self, db, users, event):
        """The evidence the curator relied on is recorded."""
        evidence = evidence_service.submit_evidence(
            db, event.id, users["creator"].id, "link",
            "League announcement of the final score",
            "A", evidence_url="https://example.com/result", now=CREATOR_WINDOW,
        )
        settlement_service.settle_event(
            db, event.id, "A", users["curator"].id, evidence_id=evidence.id, now=CREATOR_WINDOW
        )
        assert db.get(Event, event.id).evidence_used_id == evidence.id


class TestSettlementGuards:
    """Rejected settlements change nothing."""

    def test_second_settlement_is_rejected(self, db, users, event):
        """Settling twice fails and leaves the first result intact."""
        _bet(db, users["alice"], event, "A", 100.0)
        _bet(db, users["bob"], event, "B", 100.0)
        settlement_service.settle_event(db, event.id, "A", users["curator"].id, now=CREATOR_WINDOW)

        with pytest.raises(AlreadyTerminal):
            settlement_service.settle_event(db, event.id, "B", users["curator"].id, now=CREATOR_WINDOW)

        assert db.get(Event, event.id).winning_option == "A"
        assert _balance(db, users["alice"]) == (pytest.approx(1099.0), 0.0)
        assert _balance(db, users["curator"]) == (pytest.approx(1.0), 0.0)

    def test_unknown_winning_option(self, db, users, event):
        """The winning option must be one of the event's options."""
        with pytest.raises(InvalidWinningOption):
            settlement_service.settle_event(db, event.id, "C", users["curator"].id, now=CREATOR_WINDOW)
        assert db.get(Event, event.id).winning_option is None

    def test_requires_curator(self, db, users, event):
        """Only curators or admins may settle."""
        with pytest.raises(NotAuthorized):
            settlement_service.settle_event(db, event.id, "A", users["alice"].id, now=CREATOR_WINDOW)

    def test_evidence_from_another_event(self, db, users, event):
        """Evidence from a different event is rejected."""
        other = make_event(db, users["creator"].id)
        evidence = evidence_service.submit_evidence(
            db, other.id, users["creator"].id, "text",
            "Statement from the organisers",
            "B", content="B won on penalties.", now=CREATOR_WINDOW,
        )
        with pytest.raises(InvalidEvidence):
            settlement_service.settle_event(
                db, event.id, "A", users["curator"].id, evidence_id=evidence.id, now=CREATOR_WINDOW
            )

    def test_failure_rolls_back_everything(self, db, users, event, monkeypatch):
        """A failure mid-settlement rolls back and the settlement can be retried."""
        _bet(db, users["alice"], event, "A", 100.0)
        _bet(db, users["bob"], event, "B", 100.0)

        def broken_forfeit(*args, **kwargs):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(wallet_ledger, "forfeit", broken_forfeit)
        with pytest.raises(RuntimeError):
            settlement_service.settle_event(db, event.id, "A", users["curator"].id, now=CREATOR_WINDOW)

        assert db.get(Event, event.id).status == "open"
        assert _balance(db, users["alice"]) == (pytest.approx(900.0), pytest.approx(100.0))
        assert _balance(db, users["curator"]) == (0.0, 0.0)
        assert not any(w.settled for w in wager_service.list_event_wagers(db, event.id))

        # Once the fault is gone the same settlement goes through
        monkeypatch.undo()
        summary = settlement_service.settle_event(
            db, event.id, "A", users["curator"].id, now=CREATOR_WINDOW
        )
        assert summary.total_payout == pytest.approx(199.0)
        assert _balance(db, users["alice"]) == (pytest.approx(1099.0), 0.0)


class TestCancelEvent:
    """Cancellation refunds every stake and pays no commission."""

    def test_refunds_everyone(self, db, users, event):
        """Cancelling refunds every stake without commission."""
        before = _total_funds(db, users)
        _bet(db, users["alice"], event, "A", 100.0)
        _bet(db, users["bob"], event, "B", 40.0)

        cancelled = settlement_service.cancel_event(db, event.id, users["curator"].id, now=CREATOR_WINDOW)

        assert cancelled.status == "cancelled"
        assert _balance(db, users["alice"]) == (pytest.approx(1000.0), 0.0)
        assert _balance(db, users["bob"]) == (pytest.approx(1000.0), 0.0)
        assert _balance(db, users["curator"]) == (0.0, 0.0)
        assert _total_funds(db, users) == pytest.approx(before)
        for wager in wager_service.list_event_wagers(db, event.id):
            assert wager.settled
            assert wager.won is None
            assert wager.actual_payout == wager.amount

    def test_settle_after_cancel(self, db, users, event):
        """A cancelled event cannot be settled."""
        settlement_service.cancel_event(db, event.id, users["admin"].id, now=STAKING)
        with pytest.raises(AlreadyTerminal):
            settlement_service.settle_event(db, event.id, "A", users["curator"].id, now=CREATOR_WINDOW)

    def test_cancel_after_settle(self, db, users, event):
        """A resolved event cannot be cancelled."""
        settlement_service.settle_event(db, event.id, "A", users["curator"].id, now=CREATOR_WINDOW)
        with pytest.raises(AlreadyTerminal):
            settlement_service.cancel_event(db, event.id, users["curator"].id, now=CREATOR_WINDOW)

    def test_requires_curator(self, db, users, event):
        """Only curators or admins may cancel."""
        with pytest.raises(NotAuthorized):
            settlement_service.cancel_event(db, event.id, users["creator"].id, now=STAKING)
