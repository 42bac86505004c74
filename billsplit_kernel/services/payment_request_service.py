"""
billsplit_kernel.services.payment_request_service -- Payment request persistence.

Responsibility:
    Creates, transitions, edits, reads and lists payment requests.  Every
    decision is made by the pure state machine in
    ``billsplit_kernel.domain.payment_request``; this service loads the
    current snapshot, applies the event and persists the result.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Status and detail changes are compare-and-swap UPDATEs keyed on the
      request id AND the status the decision was made against.  When no
      row matches, another writer got there first; the caller receives
      ``IllegalTransition`` naming the status that won.
    - Transitions write only ``status``, ``updated_at`` and ``completed_at``.
      Detail edits also match on ``version``, so an edit made against a
      stale snapshot loses instead of replacing a newer one.
    - Successful changes return the row as stored.
    - Failed transitions write nothing.
    - Rows are never deleted; ``cancel`` is a status change.

Failure modes:
    - PaymentRequestNotFoundError (raised) for an unknown id.
    - Outcome failures: InvalidPaymentRequestError, UnauthorizedActorError,
      IllegalTransitionError.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from billsplit_kernel.domain import payment_request as lifecycle
from billsplit_kernel.domain.clock import Clock, SystemClock
from billsplit_kernel.domain.outcome import Outcome
from billsplit_kernel.domain.payment_request import (
    PaymentEvent,
    PaymentRequest,
    PaymentStatus,
)
from billsplit_kernel.domain.status_labels import project_for_viewer
from billsplit_kernel.domain.values import Money
from billsplit_kernel.exceptions import (
    BillsplitError,
    IllegalTransitionError,
    InvalidPaymentRequestError,
    PaymentRequestNotFoundError,
)
from billsplit_kernel.logging_config import LogContext, get_logger
from billsplit_kernel.models.payment_request import PaymentRequestModel

logger = get_logger("services.payment_request")


class Direction(str, Enum):
    """Which side of a request a participant is listing."""

    INCOMING = "incoming"  # participant is owed (payee)
    OUTGOING = "outgoing"  # participant owes (payer)


def _uuid(request_id: str) -> UUID:
    try:
        return UUID(str(request_id))
    except ValueError:
        raise PaymentRequestNotFoundError(str(request_id)) from None


class PaymentRequestService:
    """Manages the payment request lifecycle against the database."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_payment_method: str = "manual",
        payment_methods: Collection[str] | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._default_payment_method = default_payment_method
        self._payment_methods = frozenset(payment_methods) if payment_methods else None

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        payer_id: str,
        payee_id: str,
        amount: Money,
        description: str = "",
        *,
        bill_ref: str | None = None,
        notes: str | None = None,
        payment_method: str | None = None,
        due_date: date | None = None,
    ) -> Outcome[PaymentRequest]:
        """
        Open a request in ``sent``.

        Postconditions:
            On success the row is flushed to the session.
        """
        method = payment_method or self._default_payment_method
        try:
            self._check_payment_method(method)
            request = lifecycle.create_payment_request(
                payer_id,
                payee_id,
                amount,
                now=self._clock.now(),
                description=description,
                bill_ref=bill_ref,
                notes=notes,
                payment_method=method,
                due_date=due_date,
            )
        except BillsplitError as exc:
            logger.warning("payment_request_rejected", extra={
                "payer_id": payer_id,
                "payee_id": payee_id,
                "amount": str(amount.amount),
                "error_code": exc.code,
                "reason": str(exc),
            })
            return Outcome.fail(exc)

        self._session.add(PaymentRequestModel.from_dto(request))
        self._session.flush()

        logger.info("payment_request_created", extra={
            "request_id": request.id,
            "payer_id": request.payer_id,
            "payee_id": request.payee_id,
            "amount": str(request.amount.amount),
            "currency": request.amount.currency.code,
            "bill_ref": request.bill_ref,
        })
        return Outcome.success(request)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition(
        self,
        request_id: str,
        event: PaymentEvent | str,
        actor_id: str,
    ) -> Outcome[PaymentRequest]:
        """
        Apply ``event`` on behalf of ``actor_id``.

        Raises:
            PaymentRequestNotFoundError: Unknown ``request_id``.
        """
        with LogContext.bind(request_id=str(request_id), actor_id=actor_id):
            current = self._load(request_id)
            outcome = lifecycle.transition(current, event, actor_id, self._clock.now())
            return self._commit_change(
                current, outcome, str(getattr(event, "value", event)), self._swap_status
            )

    def cancel(self, request_id: str, actor_id: str) -> Outcome[PaymentRequest]:
        """Logical delete: the payee withdraws a request still in ``sent``."""
        return self.transition(request_id, PaymentEvent.CANCEL, actor_id)

    def update_details(
        self,
        request_id: str,
        actor_id: str,
        *,
        notes: str | None = None,
        payment_method: str | None = None,
    ) -> Outcome[PaymentRequest]:
        """
        Edit notes and/or payment method without touching ``status``.

        Raises:
            PaymentRequestNotFoundError: Unknown ``request_id``.
        """
        with LogContext.bind(request_id=str(request_id), actor_id=actor_id):
            current = self._load(request_id)
            if payment_method is not None:
                try:
                    self._check_payment_method(payment_method)
                except BillsplitError as exc:
                    return Outcome.fail(exc)
            outcome = lifecycle.update_details(
                current,
                actor_id,
                self._clock.now(),
                notes=notes,
                payment_method=payment_method,
            )
            return self._commit_change(current, outcome, "update", self._swap_details)

    def _commit_change(
        self,
        current: PaymentRequest,
        outcome: Outcome[PaymentRequest],
        action: str,
        swap: Callable[[PaymentRequest, PaymentRequest], bool],
    ) -> Outcome[PaymentRequest]:
        if not outcome.ok:
            logger.warning("payment_request_change_rejected", extra={
                "action": action,
                "status": current.status.value,
                "error_code": outcome.failure.code,
                "reason": outcome.failure.message,
            })
            return outcome

        updated = outcome.value
        if not swap(current, updated):
            winner = self._load(current.id)
            logger.warning("payment_request_race_lost", extra={
                "action": action,
                "expected_status": current.status.value,
                "actual_status": winner.status.value,
                "expected_version": current.version,
                "actual_version": winner.version,
            })
            return Outcome.fail(
                IllegalTransitionError(current.id, winner.status.value, action)
            )

        stored = self._load(current.id)
        logger.info("payment_request_updated", extra={
            "action": action,
            "from_status": current.status.value,
            "to_status": stored.status.value,
            "version": stored.version,
        })
        return Outcome.success(stored)

    def _swap_status(self, expected: PaymentRequest, updated: PaymentRequest) -> bool:
        """
        UPDATE ... WHERE id = :id AND status = :expected.

        Writes only the lifecycle columns, so a detail edit committed since
        ``expected`` was read survives.
        """
        return self._execute_swap(
            expected,
            status=updated.status.value,
            updated_at=updated.updated_at,
            completed_at=updated.completed_at,
            version=PaymentRequestModel.version + 1,
        )

    def _swap_details(self, expected: PaymentRequest, updated: PaymentRequest) -> bool:
        """UPDATE ... WHERE id = :id AND status = :expected AND version = :expected."""
        return self._execute_swap(
            expected,
            PaymentRequestModel.version == expected.version,
            notes=updated.notes,
            payment_method=updated.payment_method,
            updated_at=updated.updated_at,
            version=expected.version + 1,
        )

    def _execute_swap(self, expected: PaymentRequest, *guards, **values) -> bool:
        stmt = (
            update(PaymentRequestModel)
            .where(
                PaymentRequestModel.id == _uuid(expected.id),
                PaymentRequestModel.status == expected.status.value,
                *guards,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, request_id: str) -> PaymentRequest:
        """
        Raises:
            PaymentRequestNotFoundError: Unknown ``request_id``.
        """
        return self._load(request_id)

    def project(self, request_id: str, viewer_id: str) -> Outcome[str]:
        """Contextual status label for ``viewer_id``."""
        return project_for_viewer(self._load(request_id), viewer_id)

    def list_for_participant(
        self,
        participant_id: str,
        direction: Direction | str | None = None,
        status: PaymentStatus | str | None = None,
    ) -> list[PaymentRequest]:
        """
        Requests where ``participant_id`` is the payee (incoming), the payer
        (outgoing), or either (``direction=None``), newest first.
        """
        stmt = select(PaymentRequestModel)
        match Direction(direction) if direction is not None else None:
            case Direction.INCOMING:
                stmt = stmt.where(PaymentRequestModel.payee_id == participant_id)
            case Direction.OUTGOING:
                stmt = stmt.where(PaymentRequestModel.payer_id == participant_id)
            case _:
                stmt = stmt.where(or_(
                    PaymentRequestModel.payer_id == participant_id,
                    PaymentRequestModel.payee_id == participant_id,
                ))
        if status is not None:
            stmt = stmt.where(PaymentRequestModel.status == PaymentStatus.parse(status).value)
        stmt = stmt.order_by(
            PaymentRequestModel.created_at.desc(),
            PaymentRequestModel.id.desc(),
        )
        rows = self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def _load(self, request_id: str) -> PaymentRequest:
        model = self._session.get(
            PaymentRequestModel, _uuid(request_id), populate_existing=True
        )
        if model is None:
            raise PaymentRequestNotFoundError(str(request_id))
        return model.to_dto()

    def _check_payment_method(self, method: str) -> None:
        if self._payment_methods is not None and method not in self._payment_methods:
            raise InvalidPaymentRequestError(
                f"unsupported payment method {method!r}; expected one of {sorted(self._payment_methods)}"
            )
