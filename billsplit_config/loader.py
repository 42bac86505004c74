"""
Configuration Loader (``billsplit_config.loader``).

Responsibility
--------------
Loads one YAML file and parses it into the frozen dataclasses of
``billsplit_config.schema``.  Runtime callers go through
``billsplit_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from billsplit_config.schema import BillsplitConfig, PaymentSettings, SplitSettings

_SPLIT_KEYS = frozenset({
    "default_currency", "rounding", "percentage_tolerance", "exact_amounts_basis",
})
_PAYMENT_KEYS = frozenset({
    "default_payment_method", "payment_methods", "description_template",
})
_ROOT_KEYS = frozenset({"config_version", "split", "payments"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _check_keys(section: str, data: dict[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in {section}: {sorted(unknown)}")


def parse_split_settings(data: dict[str, Any]) -> SplitSettings:
    _check_keys("split", data, _SPLIT_KEYS)
    kwargs = dict(data)
    if "percentage_tolerance" in kwargs:
        # YAML reads 0.01 as a float; go through str to keep it exact.
        kwargs["percentage_tolerance"] = Decimal(str(kwargs["percentage_tolerance"]))
    return SplitSettings(**kwargs)


def parse_payment_settings(data: dict[str, Any]) -> PaymentSettings:
    _check_keys("payments", data, _PAYMENT_KEYS)
    kwargs = dict(data)
    if "payment_methods" in kwargs:
        kwargs["payment_methods"] = tuple(kwargs["payment_methods"])
    return PaymentSettings(**kwargs)


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed document."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_config(data: dict[str, Any]) -> BillsplitConfig:
    """Build a ``BillsplitConfig`` from a parsed YAML mapping."""
    _check_keys("root", data, _ROOT_KEYS)
    return BillsplitConfig(
        config_version=int(data.get("config_version", 1)),
        split=parse_split_settings(data.get("split") or {}),
        payments=parse_payment_settings(data.get("payments") or {}),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> BillsplitConfig:
    return parse_config(load_yaml_file(path))
