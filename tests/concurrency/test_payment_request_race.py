"""
Compare-and-swap on payment request status.

Two parties acting on the same request at the same moment: exactly one
transition lands, the other receives IllegalTransition naming the status
that won.  The sequential tests interleave two decisions against the same
stale snapshot; the threaded test needs PostgreSQL (DATABASE_URL).
"""

import os
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from billsplit_kernel.db.engine import get_session
from billsplit_kernel.domain.payment_request import PaymentStatus
from billsplit_kernel.domain.values import Money
from billsplit_kernel.exceptions import ErrorKind
from billsplit_kernel.services.payment_request_service import PaymentRequestService


def _stale_loader(service: PaymentRequestService, snapshot):
    """First load returns ``snapshot``; later loads read the database."""
    real_load = service._load
    calls = {"n": 0}

    def load(request_id):
        calls["n"] += 1
        return snapshot if calls["n"] == 1 else real_load(request_id)

    return load


@pytest.fixture
def sent(request_service):
    return request_service.create("bob", "alice", Money.of("40.00", "USD")).unwrap()


class TestSequentialInterleaving:

    def test_accept_loses_to_cancel(self, session, clock, request_service, sent, monkeypatch):
        payer_view = PaymentRequestService(session, clock=clock)
        monkeypatch.setattr(payer_view, "_load", _stale_loader(payer_view, sent))

        request_service.cancel(sent.id, "alice").unwrap()
        outcome = payer_view.transition(sent.id, "accept", "bob")

        assert outcome.failure.kind is ErrorKind.ILLEGAL_TRANSITION
        assert outcome.failure.details["status"] == "cancelled"
        assert request_service.get(sent.id).status is PaymentStatus.CANCELLED

    def test_cancel_loses_to_accept(self, session, clock, request_service, sent, monkeypatch):
        payee_view = PaymentRequestService(session, clock=clock)
        monkeypatch.setattr(payee_view, "_load", _stale_loader(payee_view, sent))

        request_service.transition(sent.id, "accept", "bob").unwrap()
        outcome = payee_view.cancel(sent.id, "alice")

        assert outcome.failure.kind is ErrorKind.ILLEGAL_TRANSITION
        assert outcome.failure.details["status"] == "accepted"
        assert request_service.get(sent.id).status is PaymentStatus.ACCEPTED

    def test_detail_edit_loses_to_status_change(self, session, clock, request_service, sent, monkeypatch):
        payee_view = PaymentRequestService(session, clock=clock)
        monkeypatch.setattr(payee_view, "_load", _stale_loader(payee_view, sent))

        request_service.transition(sent.id, "reject", "bob").unwrap()
        outcome = payee_view.update_details(sent.id, "alice", notes="reminder")

        assert outcome.failure.kind is ErrorKind.ILLEGAL_TRANSITION
        assert request_service.get(sent.id).notes is None

    def test_transition_keeps_concurrent_detail_edit(
        self, session, clock, request_service, sent, monkeypatch
    ):
        payer_view = PaymentRequestService(session, clock=clock)
        monkeypatch.setattr(payer_view, "_load", _stale_loader(payer_view, sent))

        request_service.update_details(sent.id, "alice", notes="pay by friday").unwrap()
        accepted = payer_view.transition(sent.id, "accept", "bob").unwrap()

        final = request_service.get(sent.id)
        assert final.status is PaymentStatus.ACCEPTED
        assert final.notes == "pay by friday"
        assert accepted == final
        assert final.version == 3

    def test_second_stale_detail_edit_loses(
        self, session, clock, request_service, sent, monkeypatch
    ):
        payer_view = PaymentRequestService(session, clock=clock)
        monkeypatch.setattr(payer_view, "_load", _stale_loader(payer_view, sent))

        request_service.update_details(sent.id, "alice", notes="pay by friday").unwrap()
        outcome = payer_view.update_details(sent.id, "bob", payment_method="venmo")

        assert outcome.failure.kind is ErrorKind.ILLEGAL_TRANSITION
        assert outcome.failure.details["status"] == "sent"
        final = request_service.get(sent.id)
        assert final.notes == "pay by friday"
        assert final.payment_method == "manual"
        assert final.version == 2

    def test_lost_race_is_logged(self, session, clock, request_service, sent, monkeypatch, captured_logs):
        payer_view = PaymentRequestService(session, clock=clock)
        monkeypatch.setattr(payer_view, "_load", _stale_loader(payer_view, sent))

        request_service.cancel(sent.id, "alice").unwrap()
        payer_view.transition(sent.id, "accept", "bob")

        lost = [r for r in captured_logs() if r["message"] == "payment_request_race_lost"]
        assert lost[0]["expected_status"] == "sent"
        assert lost[0]["actual_status"] == "cancelled"


@pytest.mark.postgres
@pytest.mark.skipif(
    not os.environ.get("DATABASE_URL", "").startswith("postgresql"),
    reason="threaded race needs PostgreSQL",
)
def test_threaded_accept_and_cancel(db_engine, clock):
    setup = get_session()
    request = PaymentRequestService(setup, clock=clock).create(
        "bob", "alice", Money.of("40.00", "USD")
    ).unwrap()
    setup.commit()
    setup.close()

    barrier = Barrier(2)
    results = {}

    def act(name, event, actor):
        session = get_session()
        try:
            barrier.wait()
            outcome = PaymentRequestService(session, clock=clock).transition(request.id, event, actor)
            session.commit()
            results[name] = outcome
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [
            pool.submit(act, "payer", "accept", "bob"),
            pool.submit(act, "payee", "cancel", "alice"),
        ]
        for f in futures:
            f.result()

    winners = [o for o in results.values() if o.ok]
    losers = [o for o in results.values() if not o.ok]
    assert len(winners) == 1
    assert len(losers) == 1
    assert losers[0].failure.kind is ErrorKind.ILLEGAL_TRANSITION
    assert losers[0].failure.details["status"] == winners[0].value.status.value
