"""
Pure state-machine tests for the payment request lifecycle.

Verifies:
- Creation invariants (parties, amount, precision)
- Every legal edge and the role allowed to take it
- Illegal (state, event) pairs leave the snapshot untouched
- Outsiders can trigger nothing
- Detail edits stop once a request is closed
"""

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from billsplit_kernel.domain.payment_request import (
    PAYMENT_REQUEST_WORKFLOW,
    PAYMENT_TRANSITIONS,
    PaymentEvent,
    PaymentStatus,
    Role,
    allowed_events,
    apply_event,
    create_payment_request,
    transition,
    update_details,
)
from billsplit_kernel.domain.values import Money
from billsplit_kernel.exceptions import (
    ErrorKind,
    IllegalTransitionError,
    InvalidPaymentRequestError,
    UnauthorizedActorError,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)
T1 = T0 + timedelta(hours=1)
T2 = T0 + timedelta(hours=2)
T3 = T0 + timedelta(hours=3)

PAYER = "bob"
PAYEE = "alice"
OUTSIDER = "mallory"


def _request(status: PaymentStatus = PaymentStatus.SENT):
    request = create_payment_request(
        PAYER, PAYEE, Money.of("12.50", "USD"), now=T0, description="Dinner"
    )
    return request if status is PaymentStatus.SENT else replace(request, status=status)


class TestCreate:

    def test_new_request_is_sent(self):
        request = _request()
        assert request.status is PaymentStatus.SENT
        assert request.created_at == request.updated_at == T0
        assert request.completed_at is None
        assert request.payment_method == "manual"

    def test_payer_equal_payee_rejected(self):
        with pytest.raises(InvalidPaymentRequestError):
            create_payment_request(PAYER, PAYER, Money.of("1.00", "USD"), now=T0)

    def test_missing_party_rejected(self):
        with pytest.raises(InvalidPaymentRequestError):
            create_payment_request("", PAYEE, Money.of("1.00", "USD"), now=T0)

    @pytest.mark.parametrize("amount", ["0.00", "-5.00"])
    def test_non_positive_amount_rejected(self, amount):
        with pytest.raises(InvalidPaymentRequestError):
            create_payment_request(PAYER, PAYEE, Money.of(amount, "USD"), now=T0)

    def test_sub_cent_amount_rejected(self):
        with pytest.raises(InvalidPaymentRequestError):
            create_payment_request(PAYER, PAYEE, Money.of("1.005", "USD"), now=T0)

    def test_roles(self):
        request = _request()
        assert request.role_of(PAYER) is Role.PAYER
        assert request.role_of(PAYEE) is Role.PAYEE
        assert request.role_of(OUTSIDER) is None


class TestLegalTransitions:

    def test_payer_accepts(self):
        updated = apply_event(_request(), PaymentEvent.ACCEPT, PAYER, T1)
        assert updated.status is PaymentStatus.ACCEPTED
        assert updated.updated_at == T1
        assert updated.completed_at is None

    def test_payer_rejects(self):
        updated = apply_event(_request(), "reject", PAYER, T1)
        assert updated.status is PaymentStatus.REJECTED
        assert updated.is_terminal

    def test_payee_cancels(self):
        updated = apply_event(_request(), "cancel", PAYEE, T1)
        assert updated.status is PaymentStatus.CANCELLED

    def test_mark_paid_stamps_completion(self):
        accepted = apply_event(_request(), "accept", PAYER, T1)
        completed = apply_event(accepted, "mark-paid", PAYER, T2)
        assert completed.status is PaymentStatus.COMPLETED
        assert completed.completed_at == T2

    @pytest.mark.parametrize("actor", [PAYER, PAYEE])
    def test_either_party_may_dispute(self, actor):
        completed = _request(PaymentStatus.COMPLETED)
        disputed = apply_event(completed, "dispute", actor, T3)
        assert disputed.status is PaymentStatus.DISPUTED

    def test_full_lifecycle_scenario(self):
        """Sent -> accept -> mark-paid -> dispute, payee accept always refused."""
        request = _request()
        with pytest.raises(UnauthorizedActorError):
            apply_event(request, "accept", PAYEE, T1)

        request = apply_event(request, "accept", PAYER, T1)
        assert request.status is PaymentStatus.ACCEPTED
        with pytest.raises(UnauthorizedActorError):
            apply_event(request, "accept", PAYEE, T1)

        request = apply_event(request, "mark-paid", PAYER, T2)
        assert request.status is PaymentStatus.COMPLETED
        assert request.completed_at == T2
        with pytest.raises(UnauthorizedActorError):
            apply_event(request, "accept", PAYEE, T2)

        request = apply_event(request, "dispute", PAYEE, T3)
        assert request.status is PaymentStatus.DISPUTED
        assert request.completed_at == T2
        with pytest.raises(UnauthorizedActorError):
            apply_event(request, "accept", PAYEE, T3)

    def test_cancel_then_accept_scenario(self):
        """Sent -> payee cancel; payer accept afterwards is illegal."""
        cancelled = apply_event(_request(), "cancel", PAYEE, T1)
        outcome = transition(cancelled, "accept", PAYER, T2)
        assert not outcome.ok
        assert outcome.failure.kind is ErrorKind.ILLEGAL_TRANSITION
        assert cancelled.status is PaymentStatus.CANCELLED


class TestRejectedTransitions:

    def test_wrong_role_is_unauthorized(self):
        with pytest.raises(UnauthorizedActorError):
            apply_event(_request(), "cancel", PAYER, T1)
        with pytest.raises(UnauthorizedActorError):
            apply_event(_request(PaymentStatus.ACCEPTED), "mark_paid", PAYEE, T1)

    @pytest.mark.parametrize("event", list(PaymentEvent))
    def test_outsider_cannot_trigger_anything(self, event):
        for status in PaymentStatus:
            outcome = transition(_request(status), event, OUTSIDER, T1)
            assert outcome.failure.kind is ErrorKind.UNAUTHORIZED

    def test_unknown_event_is_illegal(self):
        with pytest.raises(IllegalTransitionError):
            apply_event(_request(), "refund", PAYER, T1)

    def test_unknown_event_from_outsider_is_unauthorized(self):
        with pytest.raises(UnauthorizedActorError):
            apply_event(_request(), "refund", OUTSIDER, T1)

    def test_every_pair_outside_the_table_is_illegal_and_pure(self):
        for status in PaymentStatus:
            request = _request(status)
            legal = {t.action for t in PAYMENT_REQUEST_WORKFLOW.outgoing(status.value)}
            for event in PaymentEvent:
                if event.value in legal:
                    continue
                for actor in (PAYER, PAYEE):
                    outcome = transition(request, event, actor, T1)
                    assert not outcome.ok
                    assert outcome.failure.kind in (
                        ErrorKind.ILLEGAL_TRANSITION,
                        ErrorKind.UNAUTHORIZED,
                    )
                    assert request.status is status
                    assert request.updated_at == T0

    def test_terminal_states_have_no_exits(self):
        assert PAYMENT_TRANSITIONS[PaymentStatus.REJECTED] == frozenset()
        assert PAYMENT_TRANSITIONS[PaymentStatus.CANCELLED] == frozenset()
        assert PAYMENT_TRANSITIONS[PaymentStatus.DISPUTED] == frozenset()


class TestAllowedEvents:

    def test_sent(self):
        request = _request()
        assert set(allowed_events(request, PAYER)) == {PaymentEvent.ACCEPT, PaymentEvent.REJECT}
        assert allowed_events(request, PAYEE) == (PaymentEvent.CANCEL,)
        assert allowed_events(request, OUTSIDER) == ()

    def test_completed(self):
        request = _request(PaymentStatus.COMPLETED)
        assert allowed_events(request, PAYER) == (PaymentEvent.DISPUTE,)
        assert allowed_events(request, PAYEE) == (PaymentEvent.DISPUTE,)


class TestUpdateDetails:

    def test_edit_open_request(self):
        outcome = update_details(_request(), PAYEE, T1, notes="split evenly", payment_method="venmo")
        assert outcome.ok
        assert outcome.value.notes == "split evenly"
        assert outcome.value.payment_method == "venmo"
        assert outcome.value.status is PaymentStatus.SENT
        assert outcome.value.updated_at == T1

    def test_none_leaves_fields_unchanged(self):
        outcome = update_details(_request(), PAYER, T1, notes="n")
        assert outcome.value.payment_method == "manual"

    @pytest.mark.parametrize(
        "status", [PaymentStatus.COMPLETED, PaymentStatus.REJECTED, PaymentStatus.CANCELLED]
    )
    def test_closed_request_refuses_edits(self, status):
        outcome = update_details(_request(status), PAYER, T1, notes="late")
        assert outcome.failure.kind is ErrorKind.ILLEGAL_TRANSITION

    def test_outsider_refused(self):
        outcome = update_details(_request(), OUTSIDER, T1, notes="x")
        assert outcome.failure.kind is ErrorKind.UNAUTHORIZED


class TestStatusParsing:

    def test_pending_means_sent(self):
        assert PaymentStatus.parse("pending") is PaymentStatus.SENT
        assert PaymentStatus.parse("SENT") is PaymentStatus.SENT

    def test_event_aliases(self):
        assert PaymentEvent.parse("mark-paid") is PaymentEvent.MARK_PAID
        assert PaymentEvent.parse("Mark_Paid") is PaymentEvent.MARK_PAID
