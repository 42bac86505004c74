"""
ORM-level guards for payment request rows.

Payment requests are never physically deleted: cancellation is a status.
Once a request is completed, rejected or cancelled its row is frozen, except
for the one lifecycle edge out of a closed state (completed -> disputed).

    session.flush()
         |
         v
    [before_update] --> _check_payment_request_update() --> ImmutabilityViolationError
    [before_delete] --> _check_payment_request_delete() --> ImmutabilityViolationError

These listeners see ORM unit-of-work flushes only.  The service's
compare-and-swap UPDATE statements are checked by the state machine before
they are issued.

Usage:

    from billsplit_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    unregister_immutability_listeners()  # tests only
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from billsplit_kernel.domain.payment_request import (
    CLOSED_PAYMENT_STATUSES,
    PaymentStatus,
)
from billsplit_kernel.exceptions import ImmutabilityViolationError
from billsplit_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Closed statuses that still have one legal way out.
_REOPENING_EDGES: frozenset[tuple[str, str]] = frozenset({
    (PaymentStatus.COMPLETED.value, PaymentStatus.DISPUTED.value),
})

_ALWAYS_MUTABLE = frozenset({"updated_at", "version"})


def _blocked(target, operation: str, reason: str, field: str | None = None) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "PaymentRequest",
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    return ImmutabilityViolationError(
        entity_type="PaymentRequest",
        entity_id=str(target.id),
        reason=reason,
    )


def _check_payment_request_update(mapper, connection, target):
    """
    Refuse edits to a request that was already closed before this flush.

    Logic:
        1. Status changing out of a closed state: allowed only along a
           reopening edge, and then only ``status``, ``updated_at`` and ``version`` may move.
        2. Status unchanged and closed: any non-audit field change is refused.
        3. Status changing out of an open state: allowed.
    """
    status_history = get_history(target, "status")
    if status_history.deleted:
        old_status = str(status_history.deleted[0])
        new_status = str(status_history.added[0]) if status_history.added else old_status
    else:
        old_status = new_status = str(target.status)

    if PaymentStatus.parse(old_status) not in CLOSED_PAYMENT_STATUSES:
        return

    if old_status != new_status and (old_status, new_status) not in _REOPENING_EDGES:
        raise _blocked(
            target, "UPDATE",
            f"Cannot move a {old_status} payment request to {new_status}",
            "status",
        )

    for attr in inspect(target).attrs:
        if attr.key in _ALWAYS_MUTABLE or attr.key == "status":
            continue
        if attr.history.has_changes():
            raise _blocked(
                target, "UPDATE",
                f"Cannot modify field '{attr.key}' on a {old_status} payment request",
                attr.key,
            )


def _check_payment_request_delete(mapper, connection, target):
    """Payment requests are never deleted; cancel them instead."""
    raise _blocked(
        target, "DELETE",
        "Payment requests cannot be deleted; cancel them instead",
    )


def register_immutability_listeners() -> None:
    """Register the payment request listeners.  Idempotent."""
    from billsplit_kernel.models.payment_request import PaymentRequestModel

    for name, fn in (
        ("before_update", _check_payment_request_update),
        ("before_delete", _check_payment_request_delete),
    ):
        if not event.contains(PaymentRequestModel, name, fn):
            event.listen(PaymentRequestModel, name, fn)


def unregister_immutability_listeners() -> None:
    """Remove the listeners.  Tests only."""
    from billsplit_kernel.models.payment_request import PaymentRequestModel

    for name, fn in (
        ("before_update", _check_payment_request_update),
        ("before_delete", _check_payment_request_delete),
    ):
        if event.contains(PaymentRequestModel, name, fn):
            event.remove(PaymentRequestModel, name, fn)
