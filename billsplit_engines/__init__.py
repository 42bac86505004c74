"""
Module: billsplit_engines
Responsibility:
    Package entrypoint re-exporting the pure split-allocation engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import billsplit_kernel and billsplit_config.schema.
    MUST NOT import billsplit_services.

Invariants enforced:
    - Exact arithmetic: fractions are ``Fraction``, money is ``Decimal``;
      floats never take part in a calculation.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` (see
    ``billsplit_engines.tracer``), emitting BILLSPLIT_ENGINE_TRACE records.

Usage:
    from billsplit_engines import BillAggregator, BillParser

    bill = BillParser().parse_bill(record).unwrap()
    allocation = BillAggregator().aggregate(bill).unwrap()
"""

from billsplit_engines.aggregator import (
    BillAggregator,
    BillAllocation,
    ItemizedShare,
    ParticipantTotals,
)
from billsplit_engines.bill_parser import (
    BillParser,
    bill_from_record,
    item_from_record,
)
from billsplit_engines.reconciler import (
    AllocationReconciler,
    ItemAllocation,
    ParticipantShare,
)
from billsplit_engines.split_resolver import SplitResolver
from billsplit_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "AllocationReconciler",
    "BillAggregator",
    "BillAllocation",
    "BillParser",
    "ItemAllocation",
    "ItemizedShare",
    "ParticipantShare",
    "ParticipantTotals",
    "SplitResolver",
    "bill_from_record",
    "compute_input_fingerprint",
    "item_from_record",
    "traced_engine",
]
