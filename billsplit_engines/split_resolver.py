"""
Split Strategy Resolver -- strategy variant to exact participant fractions.

Responsibility:
    Turns one bill item's split strategy into an ordered mapping of
    participant id -> ``Fraction`` in (0, 1], summing to exactly 1.
    Participants whose weight, amount or percentage is zero are left out.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ``billsplit_engines.reconciler``.

Invariants enforced:
    - Fractions sum to exactly 1 (asserted after every resolution).
    - Exact amounts and adjustment deltas are measured against one
      reference total, chosen by ``SplitSettings.exact_amounts_basis``.
    - Percentages are normalized by their actual sum, so a sum inside the
      tolerance but not exactly 100 still yields fractions summing to 1.
    - Duplicate participant ids inside one strategy are rejected.

Failure modes:
    - StrategyMismatchError: exact amounts off by more than one minor unit,
      percentages outside 100 +/- tolerance, deltas that do not net to zero.
    - NegativeAllocationError: negative weight, amount or percentage, or an
      adjustment that pushes a fraction below zero.
    - InvalidStrategyError: no participants, duplicates, blank ids, or no
      participant left with a positive fraction.
    - CurrencyMismatchError: an amount or delta in another currency.
"""

from __future__ import annotations

from decimal import Decimal
from fractions import Fraction

from billsplit_config.schema import ExactAmountsBasis, SplitSettings
from billsplit_engines.tracer import traced_engine
from billsplit_kernel.domain.bill import (
    Adjustments,
    BillItem,
    EqualAmong,
    ExactAmounts,
    ItemFinancials,
    Percentages,
    Shares,
    SplitStrategy,
)
from billsplit_kernel.domain.outcome import Outcome
from billsplit_kernel.domain.values import Currency, Money
from billsplit_kernel.exceptions import (
    BillsplitError,
    CurrencyMismatchError,
    InvalidStrategyError,
    NegativeAllocationError,
    StrategyMismatchError,
)
from billsplit_kernel.logging_config import get_logger

logger = get_logger("engines.split_resolver")

ONE = Fraction(1)
HUNDRED = Fraction(100)


def _check_participants(split: SplitStrategy) -> None:
    ids = split.participant_ids()
    if not ids:
        raise InvalidStrategyError("split lists no participants", split.kind)
    seen: set[str] = set()
    for pid in ids:
        if not isinstance(pid, str) or not pid.strip():
            raise InvalidStrategyError("participant ids must be non-empty strings", split.kind)
        if pid in seen:
            raise InvalidStrategyError(f"participant {pid!r} appears more than once", split.kind)
        seen.add(pid)


def _check_currency(money: Money, currency: Currency, participant_id: str) -> None:
    if money.currency != currency:
        raise CurrencyMismatchError(
            currency.code, money.currency.code, f"split entry for {participant_id!r}"
        )


def _by_weight(weights: list[tuple[str, Fraction]], strategy: str) -> dict[str, Fraction]:
    total = sum((w for _, w in weights), Fraction(0))
    if total <= 0:
        raise InvalidStrategyError("no participant has a positive share", strategy)
    return {pid: w / total for pid, w in weights if w > 0}


class SplitResolver:
    """
    Resolve split strategies into exact fractions.

    Contract:
        Pure; identical input always yields the identical ordered mapping.
    Guarantees:
        - Every returned fraction is in (0, 1]; the fractions sum to 1.
        - Output order follows the strategy's entry order.
    Non-goals:
        - Does not round or produce money amounts (see AllocationReconciler).
    """

    def __init__(self, settings: SplitSettings | None = None):
        self._settings = settings or SplitSettings()

    @property
    def settings(self) -> SplitSettings:
        return self._settings

    def resolve(self, item: BillItem) -> Outcome[dict[str, Fraction]]:
        """Fractions for ``item``'s split, or a typed failure."""
        try:
            financials = item.financials(self._settings.rounding)
            return Outcome.success(self.resolve_fractions(financials, item.split))
        except BillsplitError as exc:
            logger.warning("strategy_rejected", extra={
                "item_name": item.name,
                "strategy": item.split.kind,
                "error_code": exc.code,
                "reason": str(exc),
            })
            return Outcome.fail(exc)

    def reference_total(self, financials: ItemFinancials) -> Money:
        """The amount exact amounts and adjustment deltas must reconcile to."""
        if self._settings.exact_amounts_basis is ExactAmountsBasis.SUBTOTAL:
            return financials.subtotal
        return financials.total

    @traced_engine("split_resolver", "1.0", fingerprint_fields=("financials", "split"))
    def resolve_fractions(
        self,
        financials: ItemFinancials,
        split: SplitStrategy,
    ) -> dict[str, Fraction]:
        """
        Preconditions:
            ``financials`` belongs to the item that carries ``split``.
        Postconditions:
            Fractions in (0, 1] summing to exactly 1.
        Raises:
            StrategyMismatchError, NegativeAllocationError,
            InvalidStrategyError, CurrencyMismatchError.
        """
        _check_participants(split)

        match split:
            case Shares(entries=entries):
                fractions = self._resolve_shares(entries)
            case EqualAmong(participants=participants):
                fractions = {pid: Fraction(1, len(participants)) for pid in participants}
            case ExactAmounts(entries=entries):
                fractions = self._resolve_exact(financials, entries)
            case Percentages(entries=entries):
                fractions = self._resolve_percentages(entries)
            case Adjustments(entries=entries):
                fractions = self._resolve_adjustments(financials, entries)
            case _:
                raise InvalidStrategyError(f"unknown split variant {type(split).__name__}")

        # INVARIANT: fractions sum to exactly one
        assert sum(fractions.values(), Fraction(0)) == ONE, (
            f"Fraction sum violated for {split.kind}: {sum(fractions.values())}"
        )

        logger.debug("fractions_resolved", extra={
            "strategy": split.kind,
            "participant_count": len(fractions),
        })
        return fractions

    def _resolve_shares(self, entries) -> dict[str, Fraction]:
        weights: list[tuple[str, Fraction]] = []
        for pid, weight in entries:
            if weight < 0:
                raise NegativeAllocationError(
                    f"share weight for {pid!r} is negative", participant_id=pid, value=str(weight)
                )
            if weight != weight.to_integral_value():
                raise InvalidStrategyError(
                    f"share weight for {pid!r} must be a whole number, got {weight}", Shares.kind
                )
            weights.append((pid, Fraction(weight)))
        return _by_weight(weights, Shares.kind)

    def _resolve_exact(self, financials: ItemFinancials, entries) -> dict[str, Fraction]:
        reference = self.reference_total(financials)
        amounts: list[tuple[str, Fraction]] = []
        for pid, money in entries:
            _check_currency(money, financials.currency, pid)
            if money.is_negative:
                raise NegativeAllocationError(
                    f"exact amount for {pid!r} is negative",
                    participant_id=pid,
                    value=str(money.amount),
                )
            amounts.append((pid, money.to_fraction()))

        supplied = sum((a for _, a in amounts), Fraction(0))
        if abs(supplied - reference.to_fraction()) > Fraction(financials.currency.minor_unit):
            raise StrategyMismatchError(
                ExactAmounts.kind,
                expected=str(reference.amount),
                actual=str(Money.from_fraction(supplied, financials.currency).amount),
                reason=f"exact amounts must sum to the item {self._settings.exact_amounts_basis.value}",
            )
        return _by_weight(amounts, ExactAmounts.kind)

    def _resolve_percentages(self, entries) -> dict[str, Fraction]:
        percentages: list[tuple[str, Fraction]] = []
        for pid, pct in entries:
            if pct < 0:
                raise NegativeAllocationError(
                    f"percentage for {pid!r} is negative", participant_id=pid, value=str(pct)
                )
            percentages.append((pid, Fraction(pct)))

        supplied = sum((p for _, p in percentages), Fraction(0))
        if abs(supplied - HUNDRED) > Fraction(self._settings.percentage_tolerance):
            raise StrategyMismatchError(
                Percentages.kind,
                expected="100",
                actual=str(sum((pct for _, pct in entries), Decimal(0))),
                reason=f"tolerance {self._settings.percentage_tolerance}",
            )
        return _by_weight(percentages, Percentages.kind)

    def _resolve_adjustments(self, financials: ItemFinancials, entries) -> dict[str, Fraction]:
        reference = self.reference_total(financials).to_fraction()
        deltas: list[tuple[str, Fraction]] = []
        for pid, money in entries:
            _check_currency(money, financials.currency, pid)
            deltas.append((pid, money.to_fraction()))

        net = sum((d for _, d in deltas), Fraction(0))
        if net != 0:
            raise StrategyMismatchError(
                Adjustments.kind,
                expected="0",
                actual=str(Money.from_fraction(net, financials.currency).amount),
                reason="adjustment deltas must net to zero",
            )
        if reference == 0 and any(d != 0 for _, d in deltas):
            raise StrategyMismatchError(
                Adjustments.kind,
                expected="0",
                actual="nonzero deltas",
                reason="item has nothing to adjust",
            )

        base = Fraction(1, len(deltas))
        fractions: list[tuple[str, Fraction]] = []
        for pid, delta in deltas:
            fraction = base + (delta / reference if reference else Fraction(0))
            if fraction < 0:
                raise NegativeAllocationError(
                    f"adjustment for {pid!r} exceeds their equal share",
                    participant_id=pid,
                    value=str(fraction),
                )
            fractions.append((pid, fraction))
        return _by_weight(fractions, Adjustments.kind)
