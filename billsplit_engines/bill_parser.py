"""
Bill parser -- external bill / bill-item records to domain objects.

Responsibility:
    Reads the camelCase record shape used by clients and receipt extraction
    (``name, unitPrice, quantity, totalPrice, discountPercentage,
    taxPercentage`` plus exactly one ``splitEqually`` / ``splitByShares`` /
    ``splitByExactAmounts`` / ``splitByPercentages`` / ``splitByAdjustments``
    list) and builds ``BillItem`` / ``Bill`` values.

Invariants enforced:
    - Exactly one split variant is populated; ``None`` and empty lists
      count as absent.
    - Numbers become Decimal through their string form, never through
      float arithmetic.
    - ``splitByShares`` also accepts ``{userID, amount}`` entries, where
      ``amount`` is a share count.

Failure modes:
    - InvalidStrategyError: zero or several split variants, or malformed
      split entries.
    - InvalidBillItemError: missing or malformed item fields.
    - InvalidCurrencyError: unknown currency code.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

from billsplit_config.schema import SplitSettings
from billsplit_kernel.domain.bill import (
    Adjustments,
    Bill,
    BillItem,
    EqualAmong,
    ExactAmounts,
    Percentages,
    Shares,
    SplitStrategy,
)
from billsplit_kernel.domain.outcome import Outcome
from billsplit_kernel.domain.values import Currency, Money
from billsplit_kernel.exceptions import (
    BillsplitError,
    InvalidBillItemError,
    InvalidStrategyError,
)
from billsplit_kernel.logging_config import get_logger

logger = get_logger("engines.bill_parser")

SPLIT_FIELDS: tuple[str, ...] = (
    "splitEqually",
    "splitByShares",
    "splitByExactAmounts",
    "splitByPercentages",
    "splitByAdjustments",
)


def _decimal(value: Any, field_name: str, item_name: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidBillItemError(item_name, f"{field_name} must be a number")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidBillItemError(item_name, f"{field_name} is not a number: {value!r}") from None
    if not result.is_finite():
        raise InvalidBillItemError(item_name, f"{field_name} is not a finite number: {value!r}")
    return result


def _entry_id(entry: Any, variant: str, *keys: str) -> str:
    if not isinstance(entry, Mapping):
        raise InvalidStrategyError(f"{variant} entries must be objects, got {entry!r}", variant)
    for key in keys:
        pid = entry.get(key)
        if pid is not None:
            return str(pid)
    raise InvalidStrategyError(f"{variant} entry is missing {keys[0]}", variant)


def _equal_id(entry: Any, variant: str) -> str:
    if isinstance(entry, Mapping):
        return _entry_id(entry, variant, "participantId")
    if isinstance(entry, bool) or not isinstance(entry, (str, int)):
        raise InvalidStrategyError(f"{variant} entries must be ids, got {entry!r}", variant)
    return str(entry)


def _entry_value(entry: Mapping, variant: str, item_name: str, *keys: str) -> Decimal:
    for key in keys:
        if key in entry:
            return _decimal(entry[key], f"{variant}.{key}", item_name)
    raise InvalidStrategyError(f"{variant} entry is missing {keys[0]}", variant)


def parse_split(record: Mapping[str, Any], currency: Currency, item_name: str) -> SplitStrategy:
    """
    Build the one populated split variant of an item record.

    Raises:
        InvalidStrategyError: zero or several variants, or malformed entries.
    """
    populated = [f for f in SPLIT_FIELDS if record.get(f)]
    if len(populated) != 1:
        raise InvalidStrategyError(
            f"item {item_name!r} must populate exactly one of {', '.join(SPLIT_FIELDS)}; "
            f"found {populated or 'none'}"
        )
    variant = populated[0]
    entries = record[variant]
    if not isinstance(entries, list):
        raise InvalidStrategyError(f"{variant} must be a list", variant)

    match variant:
        case "splitEqually":
            return EqualAmong(tuple(_equal_id(e, variant) for e in entries))
        case "splitByShares":
            return Shares(tuple(
                (
                    _entry_id(e, variant, "participantId", "userID"),
                    _entry_value(e, variant, item_name, "weight", "amount"),
                )
                for e in entries
            ))
        case "splitByExactAmounts":
            return ExactAmounts(tuple(
                (
                    _entry_id(e, variant, "participantId"),
                    Money.of(_entry_value(e, variant, item_name, "amount"), currency),
                )
                for e in entries
            ))
        case "splitByPercentages":
            return Percentages(tuple(
                (
                    _entry_id(e, variant, "participantId"),
                    _entry_value(e, variant, item_name, "percentage"),
                )
                for e in entries
            ))
        case _:
            return Adjustments(tuple(
                (
                    _entry_id(e, variant, "participantId"),
                    Money.of(_entry_value(e, variant, item_name, "delta"), currency),
                )
                for e in entries
            ))


def item_from_record(record: Mapping[str, Any], currency: Currency | str) -> BillItem:
    """
    Build a ``BillItem`` priced in ``currency`` (or the record's own
    ``currency`` field, which the bill later checks against its currency).

    Raises:
        InvalidBillItemError, InvalidStrategyError, InvalidCurrencyError.
    """
    if not isinstance(record, Mapping):
        raise InvalidBillItemError(str(record), "item must be an object")
    name = record.get("name")
    if not isinstance(name, str) or not name.strip():
        raise InvalidBillItemError(str(name or ""), "item name is required")

    item_currency = Currency(record["currency"]) if record.get("currency") else (
        currency if isinstance(currency, Currency) else Currency(currency)
    )
    if "unitPrice" not in record:
        raise InvalidBillItemError(name, "unitPrice is required")
    unit_price = Money.of(_decimal(record["unitPrice"], "unitPrice", name), item_currency)
    quantity = _decimal(record.get("quantity", 1), "quantity", name)
    total_price = None
    if record.get("totalPrice") is not None:
        total_price = Money.of(_decimal(record["totalPrice"], "totalPrice", name), item_currency)

    return BillItem(
        name=name,
        unit_price=unit_price,
        quantity=quantity,
        split=parse_split(record, item_currency, name),
        discount_percentage=_decimal(record.get("discountPercentage") or 0, "discountPercentage", name),
        tax_percentage=_decimal(record.get("taxPercentage") or 0, "taxPercentage", name),
        total_price=total_price,
    )


def bill_from_record(record: Mapping[str, Any], default_currency: str = "USD") -> Bill:
    """
    Build a ``Bill`` from ``{id, currency, creatorId, title, merchant,
    description, items}``.

    Raises:
        InvalidBillItemError, InvalidStrategyError, InvalidCurrencyError.
    """
    if not isinstance(record, Mapping):
        raise InvalidBillItemError("<bill>", "bill must be an object")
    currency = Currency(record.get("currency") or default_currency)
    items = record.get("items") or []
    if not isinstance(items, list):
        raise InvalidBillItemError("<bill>", "items must be a list")
    creator_id = record.get("creatorId")
    if not creator_id:
        raise InvalidBillItemError("<bill>", "creatorId is required")

    return Bill(
        id=str(record.get("id") or ""),
        currency=currency,
        creator_id=str(creator_id),
        items=tuple(item_from_record(i, currency) for i in items),
        title=record.get("title"),
        merchant=record.get("merchant"),
        description=record.get("description"),
    )


class BillParser:
    """Parse external records into domain objects, returning outcomes."""

    def __init__(self, settings: SplitSettings | None = None):
        self._settings = settings or SplitSettings()

    def parse_item(self, record: Mapping[str, Any], currency: str | None = None) -> Outcome[BillItem]:
        try:
            return Outcome.success(
                item_from_record(record, currency or self._settings.default_currency)
            )
        except BillsplitError as exc:
            logger.warning("bill_item_rejected", extra={
                "error_code": exc.code,
                "reason": str(exc),
            })
            return Outcome.fail(exc)

    def parse_bill(self, record: Mapping[str, Any]) -> Outcome[Bill]:
        try:
            bill = bill_from_record(record, self._settings.default_currency)
        except BillsplitError as exc:
            logger.warning("bill_rejected", extra={
                "error_code": exc.code,
                "reason": str(exc),
            })
            return Outcome.fail(exc)
        logger.info("bill_parsed", extra={
            "bill_id": bill.id,
            "item_count": len(bill.items),
            "currency": bill.currency.code,
        })
        return Outcome.success(bill)
