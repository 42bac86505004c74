"""
Allocation Reconciler -- distributes one item's total across participants.

Responsibility:
    Given a bill item, computes its financials, resolves its split into
    fractions and turns ``total x fraction`` into whole minor units per
    participant so that the shares add back to the item total exactly.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Depends on ``billsplit_engines.split_resolver``; consumed by
    ``billsplit_engines.aggregator``.

Invariants enforced:
    - Sum of total shares == item total, to the minor unit.
    - Sum of subtotal shares == item subtotal, to the minor unit.
    - ``tax_share = total_share - subtotal_share`` and every share is >= 0.
    - The rounding residual goes to the participant with the largest
      fraction, ties broken by participant id ascending.  A negative
      residual larger than that participant's share continues down the
      same order.

Rounding strategy:
    - All intermediates are exact ``Fraction`` values.
    - Each share is rounded once, to the currency's minor unit, using
      ``SplitSettings.rounding`` (ROUND_HALF_UP by default).
    - Subtotal shares are fitted under the total shares so no participant
      is left with negative tax.

Failure modes:
    - Everything ``BillItem.financials()`` and ``SplitResolver`` raise.
    - NegativeAllocationError if a computed share would still be negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction

from billsplit_config.schema import SplitSettings
from billsplit_engines.split_resolver import SplitResolver
from billsplit_engines.tracer import traced_engine
from billsplit_kernel.domain.bill import BillItem, ItemFinancials
from billsplit_kernel.domain.outcome import Outcome
from billsplit_kernel.domain.values import Money, round_fraction
from billsplit_kernel.exceptions import BillsplitError, NegativeAllocationError
from billsplit_kernel.logging_config import get_logger

logger = get_logger("engines.reconciler")


@dataclass(frozen=True)
class ParticipantShare:
    """One participant's part of one item."""

    participant_id: str
    fraction: Fraction
    subtotal: Money
    tax: Money
    total: Money


@dataclass(frozen=True)
class ItemAllocation:
    """Result of allocating one bill item."""

    item_name: str
    strategy: str
    financials: ItemFinancials
    shares: tuple[ParticipantShare, ...]
    residual: Money
    residual_recipient: str

    @property
    def total_allocated(self) -> Money:
        return sum((s.total for s in self.shares), Money.zero(self.financials.currency))


def residual_order(fractions: dict[str, Fraction]) -> list[str]:
    """Participants by fraction descending, then id ascending."""
    return sorted(fractions, key=lambda pid: (-fractions[pid], pid))


def distribute_units(
    total_units: int,
    fractions: dict[str, Fraction],
    rounding: str,
) -> tuple[dict[str, int], int]:
    """
    Split ``total_units`` minor units by ``fractions``.

    Returns the per-participant units (summing to ``total_units``) and the
    residual that rounding left over.
    """
    units = {pid: round_fraction(total_units * f, rounding) for pid, f in fractions.items()}
    residual = total_units - sum(units.values())

    order = residual_order(fractions)
    if residual >= 0:
        units[order[0]] += residual
    else:
        owed = -residual
        for pid in order:
            take = min(units[pid], owed)
            units[pid] -= take
            owed -= take
            if owed == 0:
                break
    return units, residual


def fit_under(
    ceilings: dict[str, int],
    units: dict[str, int],
    order: list[str],
) -> dict[str, int]:
    """
    Move units so that ``0 <= units[pid] <= ceilings[pid]`` while keeping
    the sum, shifting excess to participants with room in ``order``.
    """
    fitted = dict(units)
    excess = 0
    for pid in order:
        if fitted[pid] > ceilings[pid]:
            excess += fitted[pid] - ceilings[pid]
            fitted[pid] = ceilings[pid]
    for pid in order:
        if excess == 0:
            break
        room = ceilings[pid] - fitted[pid]
        take = min(room, excess)
        fitted[pid] += take
        excess -= take
    return fitted


class AllocationReconciler:
    """
    Allocate bill items to participants.

    Contract:
        Pure functions with deterministic rounding.  No I/O.
    Guarantees:
        - Total shares add up to the item total exactly.
        - Identical input yields the identical allocation.
    Non-goals:
        - Does not sum across items (see BillAggregator).
    """

    def __init__(
        self,
        settings: SplitSettings | None = None,
        resolver: SplitResolver | None = None,
    ):
        self._settings = settings or SplitSettings()
        self._resolver = resolver or SplitResolver(self._settings)

    def allocate(self, item: BillItem) -> Outcome[ItemAllocation]:
        """Allocate ``item``; typed failures come back as an ``Outcome``."""
        try:
            return Outcome.success(self.reconcile(item))
        except BillsplitError as exc:
            logger.warning("allocation_rejected", extra={
                "item_name": item.name,
                "strategy": item.split.kind,
                "error_code": exc.code,
                "reason": str(exc),
            })
            return Outcome.fail(exc)

    @traced_engine("allocation_reconciler", "1.0", fingerprint_fields=("item",))
    def reconcile(self, item: BillItem) -> ItemAllocation:
        """
        Preconditions:
            None beyond the item's own validation.
        Postconditions:
            Sum of ``shares[*].total`` == ``financials.total``.
        Raises:
            BillsplitError subclasses from validation and resolution.
        """
        rounding = self._settings.rounding
        financials = item.financials(rounding)
        fractions = self._resolver.resolve_fractions(financials, item.split)
        currency = financials.currency

        total_units = financials.total.minor_units
        subtotal_units = financials.subtotal.minor_units

        totals, residual = distribute_units(total_units, fractions, rounding)
        subtotals, _ = distribute_units(subtotal_units, fractions, rounding)
        order = residual_order(fractions)
        subtotals = fit_under(totals, subtotals, order)

        shares: list[ParticipantShare] = []
        for pid, fraction in fractions.items():
            if totals[pid] < 0 or subtotals[pid] < 0:
                raise NegativeAllocationError(
                    f"share of {item.name!r} for {pid!r} would be negative",
                    participant_id=pid,
                )
            total = Money.from_minor_units(totals[pid], currency)
            subtotal = Money.from_minor_units(subtotals[pid], currency)
            shares.append(ParticipantShare(
                participant_id=pid,
                fraction=fraction,
                subtotal=subtotal,
                tax=total - subtotal,
                total=total,
            ))

        allocation = ItemAllocation(
            item_name=item.name,
            strategy=item.split.kind,
            financials=financials,
            shares=tuple(shares),
            residual=Money.from_minor_units(residual, currency),
            residual_recipient=order[0],
        )

        # INVARIANT: shares reconcile to the item total
        assert allocation.total_allocated == financials.total, (
            f"Allocation conservation violated for {item.name!r}: "
            f"{allocation.total_allocated} != {financials.total}"
        )

        logger.info("allocation_completed", extra={
            "item_name": item.name,
            "strategy": item.split.kind,
            "item_total": str(financials.total.amount),
            "currency": currency.code,
            "participant_count": len(shares),
            "residual": str(allocation.residual.amount),
            "residual_recipient": allocation.residual_recipient,
        })
        return allocation
