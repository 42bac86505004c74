#!/usr/bin/env python3
"""
Split a bill file and print each participant's share as JSON.

Usage:
    python3 scripts/split_bill.py bill.yaml
    python3 scripts/split_bill.py bill.json --rounding ROUND_HALF_EVEN
    python3 scripts/split_bill.py bill.yaml --finalize

Examples:
    # Aggregate with the packaged default configuration
    python3 scripts/split_bill.py examples/dinner.yaml

    # Use a custom configuration file
    python3 scripts/split_bill.py dinner.json --config billsplit.yaml

    # Also open payment requests (in-memory SQLite unless --db-url is given)
    python3 scripts/split_bill.py dinner.yaml --finalize --db-url sqlite:///billsplit.db

Exit codes:
    0  allocation printed
    1  the bill was rejected; the error code is printed to stderr
    2  the bill or configuration file could not be read
"""

import argparse
import dataclasses
import json
import sys
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from pathlib import Path

import yaml

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from billsplit_config import get_active_config  # noqa: E402
from billsplit_engines import BillAggregator, BillParser  # noqa: E402
from billsplit_kernel.db import create_tables, init_engine_from_url, session_scope  # noqa: E402
from billsplit_kernel.db.immutability import register_immutability_listeners  # noqa: E402
from billsplit_kernel.logging_config import configure_logging  # noqa: E402
from billsplit_services import BillFinalizationService  # noqa: E402


def load_bill_file(path: Path) -> dict:
    """JSON (numbers parsed as Decimal) or YAML, chosen by suffix."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text, parse_float=Decimal)
    return yaml.safe_load(text) or {}


def _request_dict(request) -> dict:
    return {
        "id": request.id,
        "payerId": request.payer_id,
        "payeeId": request.payee_id,
        "amount": str(request.amount.amount),
        "currency": request.amount.currency.code,
        "status": request.status.value,
        "description": request.description,
    }


def _fail(failure) -> int:
    print(failure.code, file=sys.stderr)
    print(json.dumps(failure.to_dict(), default=str, indent=2), file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Split a bill and print the per-participant allocation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("bill", type=Path, help="Bill file (.json, .yaml or .yml)")
    parser.add_argument("--config", type=Path, default=None, help="Configuration YAML")
    parser.add_argument(
        "--rounding",
        choices=[ROUND_HALF_UP, ROUND_HALF_EVEN],
        default=None,
        help="Override the configured rounding mode",
    )
    parser.add_argument(
        "--finalize",
        action="store_true",
        help="Also open one payment request per debtor",
    )
    parser.add_argument(
        "--db-url",
        default="sqlite:///:memory:",
        help="Database for --finalize (default: in-memory SQLite)",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (stderr)")
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, stream=sys.stderr)

    try:
        config = get_active_config(args.config)
        record = load_bill_file(args.bill)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if args.rounding:
        config = dataclasses.replace(
            config, split=dataclasses.replace(config.split, rounding=args.rounding)
        )

    parsed = BillParser(config.split).parse_bill(record)
    if not parsed.ok:
        return _fail(parsed.failure)
    bill = parsed.value

    if not args.finalize:
        aggregated = BillAggregator(config.split).aggregate(bill)
        if not aggregated.ok:
            return _fail(aggregated.failure)
        print(json.dumps(aggregated.value.to_dict(), indent=2))
        return 0

    init_engine_from_url(args.db_url)
    create_tables()
    register_immutability_listeners()
    with session_scope() as session:
        finalized = BillFinalizationService(session, config=config).finalize(bill)
        if not finalized.ok:
            session.rollback()
            return _fail(finalized.failure)
        output = finalized.value.allocation.to_dict()
        output["paymentRequests"] = [_request_dict(r) for r in finalized.value.requests]
    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
