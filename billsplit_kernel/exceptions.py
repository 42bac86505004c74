"""
Typed exception hierarchy for the billsplit kernel.

Every error carries a class-level ``code`` (machine-readable, API-safe) and
an ``ErrorKind`` that the surrounding application maps to a user-facing
message.  Structured context is stored as attributes, never only in the
message string.

    BillsplitError (base)
    |
    +-- SplitError
    |   +-- StrategyMismatchError      STRATEGY_MISMATCH
    |   +-- InvalidStrategyError       INVALID_STRATEGY
    |   +-- NegativeAllocationError    NEGATIVE_ALLOCATION
    |   +-- InvalidBillItemError       INVALID_BILL_ITEM
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError       INVALID_CURRENCY
    |   +-- CurrencyMismatchError      CURRENCY_MISMATCH
    |
    +-- PaymentRequestError
    |   +-- IllegalTransitionError     ILLEGAL_TRANSITION
    |   +-- UnauthorizedActorError     UNAUTHORIZED_ACTOR
    |   +-- InvalidPaymentRequestError INVALID_PAYMENT_REQUEST
    |   +-- PaymentRequestNotFoundError PAYMENT_REQUEST_NOT_FOUND
    |
    +-- ImmutabilityViolationError     IMMUTABILITY_VIOLATION

Engines raise these internally.  Public operations convert them into
``Outcome`` failures (see ``billsplit_kernel.domain.outcome``) so callers
receive a result value instead of an exception:

    outcome = reconciler.allocate(item)
    if not outcome.ok:
        return {"error": outcome.failure.code, **outcome.failure.details}
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Caller-visible failure categories."""

    STRATEGY_MISMATCH = "strategy_mismatch"
    INVALID_STRATEGY = "invalid_strategy"
    NEGATIVE_ALLOCATION = "negative_allocation"
    INVALID_ITEM = "invalid_item"
    CURRENCY_MISMATCH = "currency_mismatch"
    INVALID_CURRENCY = "invalid_currency"
    ILLEGAL_TRANSITION = "illegal_transition"
    UNAUTHORIZED = "unauthorized"
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"


class BillsplitError(Exception):
    """Base exception for all billsplit errors."""

    code: str = "BILLSPLIT_ERROR"
    kind: ErrorKind = ErrorKind.INVALID_REQUEST

    def details(self) -> dict[str, Any]:
        """Public structured attributes, for logging and API payloads."""
        return {
            k: v for k, v in vars(self).items()
            if not k.startswith("_") and k != "args"
        }


# Split allocation


class SplitError(BillsplitError):
    """Base exception for split resolution and allocation errors."""

    code: str = "SPLIT_ERROR"


class StrategyMismatchError(SplitError):
    """Exact amounts, percentages or deltas do not reconcile to the expected total."""

    code: str = "STRATEGY_MISMATCH"
    kind: ErrorKind = ErrorKind.STRATEGY_MISMATCH

    def __init__(self, strategy: str, expected: str, actual: str, reason: str = ""):
        self.strategy = strategy
        self.expected = expected
        self.actual = actual
        self.reason = reason
        message = f"{strategy} split does not reconcile: expected {expected}, got {actual}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InvalidStrategyError(SplitError):
    """No participant receives a positive allocation, or the split variant is malformed."""

    code: str = "INVALID_STRATEGY"
    kind: ErrorKind = ErrorKind.INVALID_STRATEGY

    def __init__(self, reason: str, strategy: str | None = None):
        self.reason = reason
        self.strategy = strategy
        super().__init__(f"Invalid split strategy: {reason}")


class NegativeAllocationError(SplitError):
    """An input would produce a negative share.  Never clamped."""

    code: str = "NEGATIVE_ALLOCATION"
    kind: ErrorKind = ErrorKind.NEGATIVE_ALLOCATION

    def __init__(self, reason: str, participant_id: str | None = None, value: str | None = None):
        self.reason = reason
        self.participant_id = participant_id
        self.value = value
        super().__init__(f"Negative allocation: {reason}")


class InvalidBillItemError(SplitError):
    """Bill item fields are missing, malformed or inconsistent."""

    code: str = "INVALID_BILL_ITEM"
    kind: ErrorKind = ErrorKind.INVALID_ITEM

    def __init__(self, item_name: str, reason: str):
        self.item_name = item_name
        self.reason = reason
        super().__init__(f"Invalid bill item {item_name!r}: {reason}")


# Currency


class CurrencyError(BillsplitError):
    """Base exception for currency errors."""

    code: str = "CURRENCY_ERROR"
    kind: ErrorKind = ErrorKind.INVALID_CURRENCY


class InvalidCurrencyError(CurrencyError):
    """Currency code is not a supported ISO 4217 code."""

    code: str = "INVALID_CURRENCY"
    kind: ErrorKind = ErrorKind.INVALID_CURRENCY

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency}")


class CurrencyMismatchError(CurrencyError):
    """Two amounts that must share a currency do not."""

    code: str = "CURRENCY_MISMATCH"
    kind: ErrorKind = ErrorKind.CURRENCY_MISMATCH

    def __init__(self, expected: str, actual: str, context: str = ""):
        self.expected = expected
        self.actual = actual
        self.context = context
        message = f"Currency mismatch: expected {expected}, got {actual}"
        if context:
            message = f"{message} in {context}"
        super().__init__(message)


# Payment requests


class PaymentRequestError(BillsplitError):
    """Base exception for payment request lifecycle errors."""

    code: str = "PAYMENT_REQUEST_ERROR"


class IllegalTransitionError(PaymentRequestError):
    """The event is not valid from the request's current status."""

    code: str = "ILLEGAL_TRANSITION"
    kind: ErrorKind = ErrorKind.ILLEGAL_TRANSITION

    def __init__(self, request_id: str, status: str, event: str):
        self.request_id = request_id
        self.status = status
        self.event = event
        super().__init__(
            f"Cannot {event} payment request {request_id} while it is {status}"
        )


class UnauthorizedActorError(PaymentRequestError):
    """The actor may not trigger this event on this request."""

    code: str = "UNAUTHORIZED_ACTOR"
    kind: ErrorKind = ErrorKind.UNAUTHORIZED

    def __init__(self, request_id: str, actor_id: str, event: str | None = None):
        self.request_id = request_id
        self.actor_id = actor_id
        self.event = event
        if event:
            message = f"Actor {actor_id} is not allowed to {event} payment request {request_id}"
        else:
            message = f"Actor {actor_id} is not a party to payment request {request_id}"
        super().__init__(message)


class InvalidPaymentRequestError(PaymentRequestError):
    """Payment request fields violate a creation invariant."""

    code: str = "INVALID_PAYMENT_REQUEST"
    kind: ErrorKind = ErrorKind.INVALID_REQUEST

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid payment request: {reason}")


class PaymentRequestNotFoundError(PaymentRequestError):
    """No payment request exists with the given id."""

    code: str = "PAYMENT_REQUEST_NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Payment request not found: {request_id}")


# Persistence


class ImmutabilityViolationError(BillsplitError):
    """Attempted to delete a payment request, or edit one that is closed."""

    code: str = "IMMUTABILITY_VIOLATION"
    kind: ErrorKind = ErrorKind.ILLEGAL_TRANSITION

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
