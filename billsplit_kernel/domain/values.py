"""
Values -- Currency and Money value objects, plus exact minor-unit rounding.

Responsibility:
    Pairs every monetary amount with its ISO 4217 currency and converts exact
    rational intermediates (``fractions.Fraction``) into whole minor units
    under an explicit rounding mode.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by the bill model, every engine and the payment request model.

Invariants enforced:
    - Amounts are Decimal, never float.
    - Currency codes are validated at construction.
    - Arithmetic and comparison never mix currencies.

Failure modes:
    - InvalidCurrencyError for unknown codes.
    - CurrencyMismatchError when two operands carry different currencies.
    - ValueError for amounts that cannot be read as Decimal, or for an
      unsupported rounding mode.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation
from fractions import Fraction

from billsplit_kernel.domain.currency import CurrencyRegistry
from billsplit_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError

SUPPORTED_ROUNDING = frozenset({ROUND_HALF_UP, ROUND_HALF_EVEN})


def round_fraction(value: Fraction, rounding: str = ROUND_HALF_UP) -> int:
    """
    Round an exact rational to the nearest integer.

    ``ROUND_HALF_UP`` breaks ties away from zero (the ``decimal`` module's
    meaning); ``ROUND_HALF_EVEN`` breaks ties toward the even neighbour.

    Raises:
        ValueError: If ``rounding`` is not a supported mode.
    """
    if rounding not in SUPPORTED_ROUNDING:
        raise ValueError(f"Unsupported rounding mode: {rounding}")

    sign = -1 if value < 0 else 1
    magnitude = abs(value)
    whole, remainder = divmod(magnitude.numerator, magnitude.denominator)
    twice = 2 * remainder
    if twice > magnitude.denominator:
        whole += 1
    elif twice == magnitude.denominator:
        if rounding == ROUND_HALF_UP or whole % 2 == 1:
            whole += 1
    return sign * whole


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code.

    Guarantees:
        - code is uppercase, stripped and known to CurrencyRegistry.
    """

    code: str

    def __post_init__(self) -> None:
        if not isinstance(self.code, str):
            raise InvalidCurrencyError(repr(self.code))
        normalized = self.code.upper().strip()
        if not CurrencyRegistry.is_valid(normalized):
            raise InvalidCurrencyError(str(self.code))
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount, e.g. Decimal('0.01') for USD."""
        return Decimal(1).scaleb(-self.decimal_places)

    @property
    def minor_per_major(self) -> int:
        return 10 ** self.decimal_places

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency. They are never separated.

    Guarantees:
        - Immutable and hashable.
        - amount is always a Decimal.
        - Arithmetic enforces the same-currency constraint.

    Non-goals:
        - Does NOT perform currency conversion.
        - Does NOT auto-round; callers call ``round()`` or build from minor
          units explicitly.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if isinstance(self.amount, float):
            raise ValueError(f"Money amount must not be a float: {self.amount!r}")
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount}") from e
        if not self.amount.is_finite():
            raise ValueError(f"Invalid amount: {self.amount}")

        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """
        Factory method for creating Money.

        Raises:
            ValueError: If the amount cannot be read as a Decimal.
            InvalidCurrencyError: If the currency code is unknown.
        """
        if isinstance(amount, (str, int)):
            try:
                amount = Decimal(str(amount).strip())
            except InvalidOperation as e:
                raise ValueError(f"Invalid amount: {amount!r}") from e
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=Decimal(0).scaleb(-currency.decimal_places), currency=currency)

    @classmethod
    def from_minor_units(cls, units: int, currency: str | Currency) -> Money:
        """Build Money from a whole number of minor units (cents for USD)."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=Decimal(units).scaleb(-currency.decimal_places), currency=currency)

    @classmethod
    def from_fraction(
        cls,
        value: Fraction,
        currency: str | Currency,
        rounding: str = ROUND_HALF_UP,
    ) -> Money:
        """Round an exact amount in major units to the currency's minor unit."""
        if isinstance(currency, str):
            currency = Currency(currency)
        units = round_fraction(value * currency.minor_per_major, rounding)
        return cls.from_minor_units(units, currency)

    @property
    def minor_units(self) -> int:
        """
        Amount as a whole number of minor units.

        Raises:
            ValueError: If the amount carries sub-minor-unit precision.
        """
        scaled = self.amount.scaleb(self.currency.decimal_places)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"{self} is not representable in whole minor units")
        return int(scaled)

    def to_fraction(self) -> Fraction:
        return Fraction(self.amount)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Round to the currency's decimal places."""
        rounded = self.amount.quantize(self.currency.minor_unit, rounding=rounding)
        return Money(amount=rounded, currency=self.currency)

    def _check_currency(self, other: Money, op: str) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code, op)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "addition")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "subtraction")
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        if isinstance(factor, (int, str)):
            factor = Decimal(str(factor))
        if not isinstance(factor, Decimal):
            return NotImplemented
        return Money(amount=self.amount * factor, currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "comparison")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "comparison")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "comparison")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "comparison")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
