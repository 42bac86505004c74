"""
Bill -- Bill items, split strategy variants and derived item financials.

Responsibility:
    Immutable description of a shared bill: its currency, its ordered items
    and, per item, exactly one split strategy.  ``BillItem.financials()``
    derives the rounded gross / subtotal / tax / total figures every engine
    works from.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Built by ``billsplit_engines.bill_parser`` from external records and
    consumed by the split resolver, reconciler and aggregator.

Invariants enforced:
    - A split strategy is one of five tagged variants; an item carries one.
    - ``total = subtotal + tax`` for every item, each rounded to the
      currency's minor unit.
    - A stored ``total_price`` agrees with ``unit_price x quantity`` within
      one minor unit.
    - Every item shares the bill currency.

Failure modes:
    - InvalidBillItemError: empty name, negative discount, or a stored total
      that disagrees with the recomputed gross.
    - NegativeAllocationError: negative price, quantity or tax rate, or a
      discount above 100%.
    - CurrencyMismatchError: an item priced in another currency.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction
from typing import ClassVar

from billsplit_kernel.domain.values import Currency, Money
from billsplit_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidBillItemError,
    NegativeAllocationError,
)

HUNDRED = Fraction(100)


# =============================================================================
# Split strategy variants
# =============================================================================


def _to_decimal(value: Decimal | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError(f"float values are not accepted: {value!r}")
    return Decimal(str(value))


@dataclass(frozen=True)
class Shares:
    """Split by whole-number weights; a weight of 0 excludes the participant."""

    kind: ClassVar[str] = "shares"

    entries: tuple[tuple[str, Decimal], ...]

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "entries", tuple((pid, _to_decimal(w)) for pid, w in self.entries)
        )

    def participant_ids(self) -> tuple[str, ...]:
        return tuple(pid for pid, _ in self.entries)


@dataclass(frozen=True)
class EqualAmong:
    """Split equally among the listed participants."""

    kind: ClassVar[str] = "equal"

    participants: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "participants", tuple(self.participants))

    def participant_ids(self) -> tuple[str, ...]:
        return self.participants


@dataclass(frozen=True)
class ExactAmounts:
    """Each participant owes a fixed amount; amounts must reconcile to the item."""

    kind: ClassVar[str] = "exact_amounts"

    entries: tuple[tuple[str, Money], ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(self.entries))

    def participant_ids(self) -> tuple[str, ...]:
        return tuple(pid for pid, _ in self.entries)


@dataclass(frozen=True)
class Percentages:
    """Each participant owes a percentage (0-100); percentages sum to 100."""

    kind: ClassVar[str] = "percentages"

    entries: tuple[tuple[str, Decimal], ...]

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "entries", tuple((pid, _to_decimal(p)) for pid, p in self.entries)
        )

    def participant_ids(self) -> tuple[str, ...]:
        return tuple(pid for pid, _ in self.entries)


@dataclass(frozen=True)
class Adjustments:
    """Equal split among the listed participants, shifted by signed deltas that net to zero."""

    kind: ClassVar[str] = "adjustments"

    entries: tuple[tuple[str, Money], ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(self.entries))

    def participant_ids(self) -> tuple[str, ...]:
        return tuple(pid for pid, _ in self.entries)


SplitStrategy = Shares | EqualAmong | ExactAmounts | Percentages | Adjustments


# =============================================================================
# Item financials
# =============================================================================


@dataclass(frozen=True)
class ItemFinancials:
    """
    Derived money figures for one bill item.

    ``*_exact`` fields keep the unrounded rational values the reconciler
    distributes; the Money fields are rounded to the minor unit with
    ``total == subtotal + tax``.
    """

    currency: Currency
    gross: Money
    discount: Money
    subtotal: Money
    tax: Money
    total: Money
    subtotal_exact: Fraction
    tax_exact: Fraction

    @property
    def total_exact(self) -> Fraction:
        return self.subtotal_exact + self.tax_exact


# =============================================================================
# Bill item and bill
# =============================================================================


@dataclass(frozen=True)
class BillItem:
    """
    One line of a bill.

    Contract:
        Construction only normalizes types.  Validation happens in
        ``financials()`` so that engines can report failures as outcomes.
    """

    name: str
    unit_price: Money
    quantity: Decimal
    split: SplitStrategy
    discount_percentage: Decimal = Decimal(0)
    tax_percentage: Decimal = Decimal(0)
    total_price: Money | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", _to_decimal(self.quantity))
        object.__setattr__(self, "discount_percentage", _to_decimal(self.discount_percentage))
        object.__setattr__(self, "tax_percentage", _to_decimal(self.tax_percentage))

    @property
    def currency(self) -> Currency:
        return self.unit_price.currency

    def validate(self) -> None:
        """
        Check the item's own fields.

        Raises:
            InvalidBillItemError: Empty name, negative discount, or a stored
                total that disagrees with the recomputed gross.
            NegativeAllocationError: Negative price, quantity or tax, or a
                discount above 100%.
            CurrencyMismatchError: Stored total in another currency.
        """
        if not self.name or not self.name.strip():
            raise InvalidBillItemError(self.name or "", "item name is required")
        if self.unit_price.is_negative:
            raise NegativeAllocationError(
                f"unit price of {self.name!r} is negative", value=str(self.unit_price.amount)
            )
        if self.quantity < 0:
            raise NegativeAllocationError(
                f"quantity of {self.name!r} is negative", value=str(self.quantity)
            )
        if self.discount_percentage < 0:
            raise InvalidBillItemError(self.name, "discount percentage must not be negative")
        if self.discount_percentage > 100:
            raise NegativeAllocationError(
                f"discount of {self.name!r} exceeds 100%",
                value=str(self.discount_percentage),
            )
        if self.tax_percentage < 0:
            raise NegativeAllocationError(
                f"tax percentage of {self.name!r} is negative",
                value=str(self.tax_percentage),
            )
        if self.total_price is not None:
            if self.total_price.currency != self.currency:
                raise CurrencyMismatchError(
                    self.currency.code, self.total_price.currency.code, f"item {self.name!r}"
                )
            gross = Fraction(self.unit_price.amount) * Fraction(self.quantity)
            difference = abs(Fraction(self.total_price.amount) - gross)
            if difference > Fraction(self.currency.minor_unit):
                raise InvalidBillItemError(
                    self.name,
                    f"stored total {self.total_price.amount} does not match "
                    f"unit price x quantity ({self.unit_price.amount} x {self.quantity})",
                )

    def financials(self, rounding: str = ROUND_HALF_UP) -> ItemFinancials:
        """
        Derive the item's rounded figures.

        Postconditions:
            - ``total == subtotal + tax`` exactly.
            - ``gross - discount == subtotal`` exactly.

        Raises:
            See ``validate()``.
        """
        self.validate()

        currency = self.currency
        gross_exact = Fraction(self.unit_price.amount) * Fraction(self.quantity)
        subtotal_exact = gross_exact * (1 - Fraction(self.discount_percentage) / HUNDRED)
        tax_exact = subtotal_exact * Fraction(self.tax_percentage) / HUNDRED

        gross = Money.from_fraction(gross_exact, currency, rounding)
        subtotal = Money.from_fraction(subtotal_exact, currency, rounding)
        total = Money.from_fraction(subtotal_exact + tax_exact, currency, rounding)

        return ItemFinancials(
            currency=currency,
            gross=gross,
            discount=gross - subtotal,
            subtotal=subtotal,
            tax=total - subtotal,
            total=total,
            subtotal_exact=subtotal_exact,
            tax_exact=tax_exact,
        )


@dataclass(frozen=True)
class Bill:
    """A bill owned by its creator, denominated in one currency."""

    id: str
    currency: Currency
    creator_id: str
    items: tuple[BillItem, ...] = field(default_factory=tuple)
    title: str | None = None
    merchant: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        object.__setattr__(self, "items", tuple(self.items))

    def validate_currency(self) -> None:
        """
        Raises:
            CurrencyMismatchError: If any item is priced in another currency.
        """
        for item in self.items:
            if item.currency != self.currency:
                raise CurrencyMismatchError(
                    self.currency.code, item.currency.code, f"item {item.name!r}"
                )

    def participant_ids(self) -> tuple[str, ...]:
        """Participants in order of first appearance across the items."""
        seen: dict[str, None] = {}
        for item in self.items:
            for pid in item.split.participant_ids():
                seen.setdefault(pid, None)
        return tuple(seen)
