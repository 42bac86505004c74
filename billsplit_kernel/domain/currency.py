"""Currency -- ISO 4217 registry with minor-unit precision."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """One ISO 4217 currency and the number of digits in its minor unit."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount (0.01 for USD, 1 for JPY)."""
        return Decimal(1).scaleb(-self.decimal_places)

    @property
    def quantize_exponent(self) -> Decimal:
        """Exponent for ``Decimal.quantize`` at this currency's precision."""
        return Decimal(1).scaleb(-self.decimal_places)


def _info(code: str, places: int, name: str) -> tuple[str, CurrencyInfo]:
    return code, CurrencyInfo(code, places, name)


class CurrencyRegistry:
    """Registry of the ISO 4217 currencies bills may be denominated in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = dict([
        # Two decimal places
        _info("USD", 2, "US Dollar"),
        _info("EUR", 2, "Euro"),
        _info("GBP", 2, "Pound Sterling"),
        _info("CHF", 2, "Swiss Franc"),
        _info("CAD", 2, "Canadian Dollar"),
        _info("AUD", 2, "Australian Dollar"),
        _info("NZD", 2, "New Zealand Dollar"),
        _info("INR", 2, "Indian Rupee"),
        _info("CNY", 2, "Chinese Yuan"),
        _info("HKD", 2, "Hong Kong Dollar"),
        _info("SGD", 2, "Singapore Dollar"),
        _info("SEK", 2, "Swedish Krona"),
        _info("NOK", 2, "Norwegian Krone"),
        _info("DKK", 2, "Danish Krone"),
        _info("PLN", 2, "Polish Zloty"),
        _info("CZK", 2, "Czech Koruna"),
        _info("MXN", 2, "Mexican Peso"),
        _info("BRL", 2, "Brazilian Real"),
        _info("ZAR", 2, "South African Rand"),
        _info("AED", 2, "UAE Dirham"),
        _info("ILS", 2, "Israeli New Shekel"),
        _info("THB", 2, "Thai Baht"),
        _info("PHP", 2, "Philippine Peso"),
        _info("IDR", 2, "Indonesian Rupiah"),
        _info("TRY", 2, "Turkish Lira"),
        # Zero decimal places
        _info("JPY", 0, "Japanese Yen"),
        _info("KRW", 0, "South Korean Won"),
        _info("VND", 0, "Vietnamese Dong"),
        _info("CLP", 0, "Chilean Peso"),
        _info("ISK", 0, "Icelandic Krona"),
        # Three decimal places
        _info("BHD", 3, "Bahraini Dinar"),
        _info("KWD", 3, "Kuwaiti Dinar"),
        _info("OMR", 3, "Omani Rial"),
        _info("JOD", 3, "Jordanian Dinar"),
        _info("TND", 3, "Tunisian Dinar"),
    ])

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        return cls._CURRENCIES.get(code)

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Minor-unit digits for ``code``; unknown codes default to 2."""
        info = cls._CURRENCIES.get(code)
        return info.decimal_places if info else 2

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
