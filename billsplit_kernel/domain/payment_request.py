"""
Payment request lifecycle (``billsplit_kernel.domain.payment_request``).

Responsibility
--------------
The finite state machine for a money-owed request between a payer (who
owes) and a payee (who is owed): statuses, events, which party may trigger
each event, and the pure functions that apply an event or a detail edit to
an immutable ``PaymentRequest`` snapshot.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Time is passed
in as ``now``.  ``PaymentRequestService`` loads, applies and persists.

Invariants enforced
-------------------
* ``PAYMENT_REQUEST_WORKFLOW`` defines the only legal status changes.
* ``payer_id != payee_id`` and ``amount > 0`` at creation.
* Evaluation order for an event: outsider -> role not permitted ->
  no edge from the current status.
* A failed event or edit returns the original snapshot untouched.
* ``completed_at`` is set only by ``mark_paid``.
* ``pending`` is read as ``sent``.

Failure modes
-------------
* ``InvalidPaymentRequestError`` -- creation invariants.
* ``UnauthorizedActorError`` -- actor is not a party, or their role may not
  trigger the event.
* ``IllegalTransitionError`` -- no edge for the event from the current
  status, unknown event, or a detail edit on a closed request.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from uuid import uuid4

from billsplit_kernel.domain.outcome import Outcome
from billsplit_kernel.domain.values import Money
from billsplit_kernel.domain.workflow import Transition, Workflow
from billsplit_kernel.exceptions import (
    BillsplitError,
    IllegalTransitionError,
    InvalidPaymentRequestError,
    UnauthorizedActorError,
)


# =========================================================================
# Status, events, roles
# =========================================================================


class PaymentStatus(str, Enum):
    """Payment request lifecycle states."""

    SENT = "sent"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"

    @classmethod
    def parse(cls, value: PaymentStatus | str) -> PaymentStatus:
        """Read a stored or user-supplied status; ``pending`` means ``sent``."""
        if isinstance(value, PaymentStatus):
            return value
        normalized = value.strip().lower()
        if normalized == "pending":
            return cls.SENT
        return cls(normalized)


class PaymentEvent(str, Enum):
    """Events a party can trigger on a payment request."""

    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"
    MARK_PAID = "mark_paid"
    DISPUTE = "dispute"

    @classmethod
    def parse(cls, value: PaymentEvent | str) -> PaymentEvent:
        if isinstance(value, PaymentEvent):
            return value
        return cls(value.strip().lower().replace("-", "_"))


class Role(str, Enum):
    """A party's role on one request."""

    PAYER = "payer"
    PAYEE = "payee"


_EITHER = frozenset({Role.PAYER.value, Role.PAYEE.value})

PAYMENT_REQUEST_WORKFLOW = Workflow(
    name="payment_request",
    description="Lifecycle of a money-owed request between two participants",
    initial_state=PaymentStatus.SENT.value,
    states=tuple(s.value for s in PaymentStatus),
    transitions=(
        Transition("sent", "accepted", "accept", frozenset({"payer"})),
        Transition("sent", "rejected", "reject", frozenset({"payer"})),
        Transition("sent", "cancelled", "cancel", frozenset({"payee"})),
        Transition("accepted", "completed", "mark_paid", frozenset({"payer"}),
                   stamps_completion=True),
        Transition("completed", "disputed", "dispute", _EITHER),
    ),
    terminal_states=frozenset({"rejected", "cancelled"}),
)

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    status: frozenset(
        PaymentStatus(t.to_state)
        for t in PAYMENT_REQUEST_WORKFLOW.outgoing(status.value)
    )
    for status in PaymentStatus
}

TERMINAL_PAYMENT_STATUSES: frozenset[PaymentStatus] = frozenset({
    PaymentStatus.REJECTED,
    PaymentStatus.CANCELLED,
})

# Statuses whose notes and payment method can no longer be edited.
CLOSED_PAYMENT_STATUSES: frozenset[PaymentStatus] = TERMINAL_PAYMENT_STATUSES | {
    PaymentStatus.COMPLETED,
}


# =========================================================================
# Request snapshot
# =========================================================================


@dataclass(frozen=True)
class PaymentRequest:
    """Immutable snapshot of a payment request."""

    id: str
    payer_id: str
    payee_id: str
    amount: Money
    status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    bill_ref: str | None = None
    description: str = ""
    notes: str | None = None
    payment_method: str = "manual"
    due_date: date | None = None
    version: int = 1

    def role_of(self, participant_id: str) -> Role | None:
        if participant_id == self.payer_id:
            return Role.PAYER
        if participant_id == self.payee_id:
            return Role.PAYEE
        return None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PAYMENT_STATUSES


def create_payment_request(
    payer_id: str,
    payee_id: str,
    amount: Money,
    *,
    now: datetime,
    description: str = "",
    request_id: str | None = None,
    bill_ref: str | None = None,
    notes: str | None = None,
    payment_method: str = "manual",
    due_date: date | None = None,
) -> PaymentRequest:
    """
    Build a new request in ``sent``.

    Raises:
        InvalidPaymentRequestError: Missing party, payer equals payee, or a
            non-positive amount.
    """
    if not payer_id or not payee_id:
        raise InvalidPaymentRequestError("payer and payee are required")
    if payer_id == payee_id:
        raise InvalidPaymentRequestError("payer and payee must be different participants")
    if not amount.is_positive:
        raise InvalidPaymentRequestError(f"amount must be positive, got {amount}")
    if amount.round().amount != amount.amount:
        raise InvalidPaymentRequestError(
            f"amount {amount} has more precision than {amount.currency.code} allows"
        )

    return PaymentRequest(
        id=request_id or str(uuid4()),
        payer_id=payer_id,
        payee_id=payee_id,
        amount=amount,
        status=PaymentStatus.SENT,
        created_at=now,
        updated_at=now,
        bill_ref=bill_ref,
        description=description,
        notes=notes,
        payment_method=payment_method,
        due_date=due_date,
    )


# =========================================================================
# Transitions
# =========================================================================


def _require_party(request: PaymentRequest, actor_id: str, event: str | None) -> Role:
    role = request.role_of(actor_id)
    if role is None:
        raise UnauthorizedActorError(request.id, actor_id, event)
    return role


def apply_event(
    request: PaymentRequest,
    event: PaymentEvent | str,
    actor_id: str,
    now: datetime,
) -> PaymentRequest:
    """
    Apply ``event`` on behalf of ``actor_id`` and return the new snapshot.

    Preconditions:
        ``now`` is timezone-aware.

    Postconditions:
        - ``status`` follows the workflow edge; ``updated_at == now``.
        - ``completed_at == now`` after ``mark_paid``.
        - ``version`` is one higher.

    Raises:
        UnauthorizedActorError: Actor is not a party, or their role may not
            trigger this event.
        IllegalTransitionError: Unknown event, or no edge from the current
            status.
    """
    raw_event = event.value if isinstance(event, PaymentEvent) else str(event)
    role = _require_party(request, actor_id, raw_event)

    try:
        parsed = PaymentEvent.parse(event)
    except ValueError:
        raise IllegalTransitionError(request.id, request.status.value, raw_event) from None

    if role.value not in PAYMENT_REQUEST_WORKFLOW.actors_for(parsed.value):
        raise UnauthorizedActorError(request.id, actor_id, parsed.value)

    edge = PAYMENT_REQUEST_WORKFLOW.find(request.status.value, parsed.value)
    if edge is None or role.value not in edge.actors:
        raise IllegalTransitionError(request.id, request.status.value, parsed.value)

    return replace(
        request,
        status=PaymentStatus(edge.to_state),
        updated_at=now,
        completed_at=now if edge.stamps_completion else request.completed_at,
        version=request.version + 1,
    )


def transition(
    request: PaymentRequest,
    event: PaymentEvent | str,
    actor_id: str,
    now: datetime,
) -> Outcome[PaymentRequest]:
    """``apply_event`` returning an ``Outcome`` instead of raising."""
    try:
        return Outcome.success(apply_event(request, event, actor_id, now))
    except BillsplitError as exc:
        return Outcome.fail(exc)


def apply_details(
    request: PaymentRequest,
    actor_id: str,
    now: datetime,
    *,
    notes: str | None = None,
    payment_method: str | None = None,
) -> PaymentRequest:
    """
    Edit non-status fields.  ``None`` leaves a field unchanged.

    Raises:
        UnauthorizedActorError: Actor is not a party.
        IllegalTransitionError: The request is completed, rejected or
            cancelled.
    """
    _require_party(request, actor_id, "update")
    if request.status in CLOSED_PAYMENT_STATUSES:
        raise IllegalTransitionError(request.id, request.status.value, "update")
    return replace(
        request,
        notes=request.notes if notes is None else notes,
        payment_method=request.payment_method if payment_method is None else payment_method,
        updated_at=now,
        version=request.version + 1,
    )


def update_details(
    request: PaymentRequest,
    actor_id: str,
    now: datetime,
    *,
    notes: str | None = None,
    payment_method: str | None = None,
) -> Outcome[PaymentRequest]:
    """``apply_details`` returning an ``Outcome`` instead of raising."""
    try:
        return Outcome.success(
            apply_details(request, actor_id, now, notes=notes, payment_method=payment_method)
        )
    except BillsplitError as exc:
        return Outcome.fail(exc)


def allowed_events(request: PaymentRequest, actor_id: str) -> tuple[PaymentEvent, ...]:
    """Events ``actor_id`` could trigger right now; empty for outsiders."""
    role = request.role_of(actor_id)
    if role is None:
        return ()
    return tuple(
        PaymentEvent(t.action)
        for t in PAYMENT_REQUEST_WORKFLOW.outgoing(request.status.value)
        if role.value in t.actors
    )
