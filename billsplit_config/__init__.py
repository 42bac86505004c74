"""
billsplit_config -- single public entrypoint for billsplit configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  It loads a YAML file (the packaged default unless a path
    is given), validates it into frozen dataclasses and emits a
    ``BILLSPLIT_CONFIG_TRACE`` log record.

Architecture position:
    Configuration sits above ``billsplit_kernel`` and below the engines and
    services, which receive ``SplitSettings`` / ``PaymentSettings`` by
    injection.  The kernel never imports from this package.

Failure modes:
    - ``FileNotFoundError`` -- the given path does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

from pathlib import Path

from billsplit_config.loader import load_config
from billsplit_config.schema import (
    BillsplitConfig,
    ExactAmountsBasis,
    PaymentSettings,
    SplitSettings,
)
from billsplit_kernel.logging_config import get_logger

__all__ = [
    "BillsplitConfig",
    "ExactAmountsBasis",
    "PaymentSettings",
    "SplitSettings",
    "get_active_config",
    "DEFAULT_CONFIG_PATH",
]

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "billsplit.yaml"


def get_active_config(path: Path | str | None = None) -> BillsplitConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned config has passed key and value validation.
        - A ``BILLSPLIT_CONFIG_TRACE`` log entry is emitted on every call.

    Non-goals:
        - No caching; callers hold the returned config.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_config(config_path)

    _logger.info(
        "BILLSPLIT_CONFIG_TRACE",
        extra={
            "trace_type": "BILLSPLIT_CONFIG_TRACE",
            "config_path": str(config_path),
            "config_version": config.config_version,
            "checksum": config.checksum,
            "default_currency": config.split.default_currency,
            "rounding": config.split.rounding,
            "exact_amounts_basis": config.split.exact_amounts_basis.value,
            "default_payment_method": config.payments.default_payment_method,
        },
    )
    return config
