"""
Bill Aggregator -- per-participant totals across every item of a bill.

Responsibility:
    Allocates each item independently, then folds the item allocations into
    one running total per participant (subtotal, tax, total, itemization)
    plus bill-wide subtotal, tax and total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Depends on ``billsplit_engines.reconciler``; consumed by
    ``billsplit_services.bill_finalization`` and ``scripts/split_bill.py``.

Invariants enforced:
    - Sum of participant totals == bill total.
    - Items may be allocated concurrently through an injected executor; the
      merge into running totals happens afterwards, in item order, in a
      single reducer.
    - Participants appear in order of first appearance across the items.

Failure modes:
    - CurrencyMismatchError if an item is not in the bill currency.
    - Any failure of an individual item allocation.
"""

from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any

from billsplit_config.schema import SplitSettings
from billsplit_engines.reconciler import AllocationReconciler, ItemAllocation
from billsplit_engines.tracer import traced_engine
from billsplit_kernel.domain.bill import Bill
from billsplit_kernel.domain.outcome import Outcome
from billsplit_kernel.domain.values import Currency, Money
from billsplit_kernel.exceptions import BillsplitError
from billsplit_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.aggregator")


def _fraction_str(value: Fraction) -> str:
    return f"{value.numerator}/{value.denominator}" if value.denominator != 1 else str(value.numerator)


@dataclass(frozen=True)
class ItemizedShare:
    item_name: str
    share: Fraction
    amount: Money

    def to_dict(self) -> dict[str, str]:
        return {
            "itemName": self.item_name,
            "share": _fraction_str(self.share),
            "amount": str(self.amount.amount),
        }


@dataclass(frozen=True)
class ParticipantTotals:
    """What one participant owes across the whole bill."""

    participant_id: str
    subtotal: Money
    tax: Money
    total: Money
    items: tuple[ItemizedShare, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "subtotal": str(self.subtotal.amount),
            "tax": str(self.tax.amount),
            "total": str(self.total.amount),
            "items": [i.to_dict() for i in self.items],
        }


@dataclass(frozen=True)
class BillAllocation:
    """Aggregated allocation of a bill."""

    bill_id: str
    currency: Currency
    participants: tuple[ParticipantTotals, ...]
    subtotal: Money
    tax: Money
    total: Money
    item_allocations: tuple[ItemAllocation, ...] = field(default=(), repr=False)

    def for_participant(self, participant_id: str) -> ParticipantTotals | None:
        for p in self.participants:
            if p.participant_id == participant_id:
                return p
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "billId": self.bill_id,
            "currency": self.currency.code,
            "participants": {p.participant_id: p.to_dict() for p in self.participants},
            "subtotal": str(self.subtotal.amount),
            "tax": str(self.tax.amount),
            "total": str(self.total.amount),
        }


class _RunningTotal:
    """Mutable accumulator owned by the single merge loop."""

    def __init__(self, currency: Currency):
        self.subtotal = Money.zero(currency)
        self.tax = Money.zero(currency)
        self.total = Money.zero(currency)
        self.items: list[ItemizedShare] = []


class BillAggregator:
    """
    Aggregate a bill's item allocations per participant.

    Contract:
        Pure with respect to its inputs.  An injected ``Executor`` only
        changes where item allocations run, never the result.
    Guarantees:
        - Participant totals add up to the bill total.
        - Deterministic for identical input, with or without an executor.
    Non-goals:
        - Does not net across bills, create payment requests or persist.
    """

    def __init__(
        self,
        settings: SplitSettings | None = None,
        reconciler: AllocationReconciler | None = None,
        executor: Executor | None = None,
    ):
        self._settings = settings or SplitSettings()
        self._reconciler = reconciler or AllocationReconciler(self._settings)
        self._executor = executor

    def aggregate(self, bill: Bill) -> Outcome[BillAllocation]:
        """Aggregate ``bill``; typed failures come back as an ``Outcome``."""
        try:
            return Outcome.success(self.build(bill))
        except BillsplitError as exc:
            logger.warning("aggregation_rejected", extra={
                "bill_id": bill.id,
                "error_code": exc.code,
                "reason": str(exc),
            })
            return Outcome.fail(exc)

    def _allocate_items(self, bill: Bill) -> list[ItemAllocation]:
        if self._executor is None:
            return [self._reconciler.reconcile(item) for item in bill.items]
        return list(self._executor.map(self._reconciler.reconcile, bill.items))

    @traced_engine("bill_aggregator", "1.0", fingerprint_fields=("bill",))
    def build(self, bill: Bill) -> BillAllocation:
        """
        Postconditions:
            ``sum(p.total for p in participants) == total``.
        Raises:
            BillsplitError subclasses from validation and item allocation.
        """
        with LogContext.bind(bill_id=bill.id):
            logger.info("aggregation_started", extra={
                "item_count": len(bill.items),
                "currency": bill.currency.code,
                "concurrent": self._executor is not None,
            })

            bill.validate_currency()
            allocations = self._allocate_items(bill)

            currency = bill.currency
            running: dict[str, _RunningTotal] = {}
            subtotal = Money.zero(currency)
            tax = Money.zero(currency)
            total = Money.zero(currency)

            for allocation in allocations:
                subtotal += allocation.financials.subtotal
                tax += allocation.financials.tax
                total += allocation.financials.total
                for share in allocation.shares:
                    acc = running.setdefault(share.participant_id, _RunningTotal(currency))
                    acc.subtotal += share.subtotal
                    acc.tax += share.tax
                    acc.total += share.total
                    acc.items.append(ItemizedShare(allocation.item_name, share.fraction, share.total))

            participants = tuple(
                ParticipantTotals(
                    participant_id=pid,
                    subtotal=acc.subtotal,
                    tax=acc.tax,
                    total=acc.total,
                    items=tuple(acc.items),
                )
                for pid, acc in running.items()
            )

            allocated = sum((p.total for p in participants), Money.zero(currency))
            # INVARIANT: participant totals reconcile to the bill total
            assert allocated == total, (
                f"Bill conservation violated for {bill.id}: {allocated} != {total}"
            )

            logger.info("aggregation_completed", extra={
                "participant_count": len(participants),
                "bill_total": str(total.amount),
                "currency": currency.code,
            })

            return BillAllocation(
                bill_id=bill.id,
                currency=currency,
                participants=participants,
                subtotal=subtotal,
                tax=tax,
                total=total,
                item_allocations=tuple(allocations),
            )
