"""
Pure domain layer.

Data objects and decision logic with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (callers pass ``now``)

All domain objects are immutable and deterministic.
"""

from billsplit_kernel.domain.bill import (
    Adjustments,
    Bill,
    BillItem,
    EqualAmong,
    ExactAmounts,
    ItemFinancials,
    Percentages,
    Shares,
    SplitStrategy,
)
from billsplit_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billsplit_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from billsplit_kernel.domain.outcome import Failure, Outcome
from billsplit_kernel.domain.payment_request import (
    CLOSED_PAYMENT_STATUSES,
    PAYMENT_REQUEST_WORKFLOW,
    TERMINAL_PAYMENT_STATUSES,
    PaymentEvent,
    PaymentRequest,
    PaymentStatus,
    Role,
    allowed_events,
    apply_event,
    create_payment_request,
    transition,
    update_details,
)
from billsplit_kernel.domain.status_labels import (
    STATUS_LABELS,
    project,
    project_for_viewer,
)
from billsplit_kernel.domain.values import Currency, Money, round_fraction
from billsplit_kernel.domain.workflow import Transition, Workflow

__all__ = [
    # Value objects
    "Currency",
    "Money",
    "round_fraction",
    "CurrencyInfo",
    "CurrencyRegistry",
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Results
    "Failure",
    "Outcome",
    # Bills
    "Adjustments",
    "Bill",
    "BillItem",
    "EqualAmong",
    "ExactAmounts",
    "ItemFinancials",
    "Percentages",
    "Shares",
    "SplitStrategy",
    # Payment requests
    "CLOSED_PAYMENT_STATUSES",
    "PAYMENT_REQUEST_WORKFLOW",
    "TERMINAL_PAYMENT_STATUSES",
    "PaymentEvent",
    "PaymentRequest",
    "PaymentStatus",
    "Role",
    "Transition",
    "Workflow",
    "allowed_events",
    "apply_event",
    "create_payment_request",
    "transition",
    "update_details",
    "STATUS_LABELS",
    "project",
    "project_for_viewer",
]
