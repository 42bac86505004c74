"""
Billsplit configuration schema.

Frozen dataclasses the loader builds from YAML.  Every field has a default,
so engines and services that receive no configuration behave exactly as the
shipped ``defaults/billsplit.yaml`` describes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from billsplit_kernel.domain.currency import CurrencyRegistry
from billsplit_kernel.domain.values import SUPPORTED_ROUNDING


class ExactAmountsBasis(str, Enum):
    """Reference total that exact amounts and adjustment deltas are measured against."""

    TOTAL = "total"  # post-discount, post-tax
    SUBTOTAL = "subtotal"  # post-discount, pre-tax


@dataclass(frozen=True)
class SplitSettings:
    """Settings for the split resolver, reconciler and aggregator."""

    default_currency: str = "USD"
    rounding: str = ROUND_HALF_UP
    percentage_tolerance: Decimal = Decimal("0.01")
    exact_amounts_basis: ExactAmountsBasis = ExactAmountsBasis.TOTAL

    def __post_init__(self) -> None:
        if not CurrencyRegistry.is_valid(self.default_currency):
            raise ValueError(f"Unknown default currency: {self.default_currency}")
        if self.rounding not in SUPPORTED_ROUNDING:
            raise ValueError(
                f"rounding must be one of {sorted(SUPPORTED_ROUNDING)}, got {self.rounding!r}"
            )
        if not isinstance(self.percentage_tolerance, Decimal):
            object.__setattr__(
                self, "percentage_tolerance", Decimal(str(self.percentage_tolerance))
            )
        if self.percentage_tolerance < 0:
            raise ValueError("percentage_tolerance must not be negative")
        if not isinstance(self.exact_amounts_basis, ExactAmountsBasis):
            object.__setattr__(
                self, "exact_amounts_basis", ExactAmountsBasis(self.exact_amounts_basis)
            )


@dataclass(frozen=True)
class PaymentSettings:
    """Defaults applied to payment requests."""

    default_payment_method: str = "manual"
    payment_methods: tuple[str, ...] = (
        "manual",
        "venmo",
        "paypal",
        "zelle",
        "bank_transfer",
        "other",
    )
    description_template: str = "Payment for bill split: {merchant}"

    def __post_init__(self) -> None:
        object.__setattr__(self, "payment_methods", tuple(self.payment_methods))
        if self.default_payment_method not in self.payment_methods:
            raise ValueError(
                f"default_payment_method {self.default_payment_method!r} "
                f"is not one of {list(self.payment_methods)}"
            )
        try:
            self.description_template.format(merchant="")
        except (KeyError, IndexError) as e:
            raise ValueError(
                f"description_template may only reference {{merchant}}: {e}"
            ) from e

    def describe(self, merchant: str | None) -> str:
        return self.description_template.format(merchant=merchant or "bill")


@dataclass(frozen=True)
class BillsplitConfig:
    """Complete runtime configuration."""

    config_version: int = 1
    split: SplitSettings = field(default_factory=SplitSettings)
    payments: PaymentSettings = field(default_factory=PaymentSettings)
    checksum: str = ""
