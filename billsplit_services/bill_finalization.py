"""
billsplit_services.bill_finalization -- Turn a bill into payment requests.

Responsibility:
    Aggregates a bill and opens one payment request per debtor: every
    participant other than the creator whose total is positive owes that
    total to the creator.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes ``BillAggregator`` (pure) with ``PaymentRequestService``
    (session-bound).  Neither of those imports this package.

Invariants enforced:
    - One request per non-creator participant with a positive total.
    - Request amount == that participant's aggregated total.
    - Payee is the bill creator; ``bill_ref`` is the bill id.
    - Nothing is written when aggregation fails.

Failure modes:
    - Any aggregation failure (strategy, item, currency) as an Outcome.
    - A failed request creation is returned as an Outcome; requests already
      flushed in the same session are discarded by the caller's rollback.

Usage:
    with session_scope() as session:
        service = BillFinalizationService(session, config=get_active_config())
        finalized = service.finalize(bill).unwrap()
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from billsplit_config.schema import BillsplitConfig
from billsplit_engines.aggregator import BillAggregator, BillAllocation
from billsplit_engines.bill_parser import BillParser
from billsplit_kernel.domain.bill import Bill
from billsplit_kernel.domain.clock import Clock, SystemClock
from billsplit_kernel.domain.outcome import Outcome
from billsplit_kernel.domain.payment_request import PaymentRequest
from billsplit_kernel.logging_config import LogContext, get_logger
from billsplit_kernel.services.payment_request_service import PaymentRequestService

logger = get_logger("services.bill_finalization")


@dataclass(frozen=True)
class FinalizedBill:
    """A bill's allocation together with the requests opened for it."""

    allocation: BillAllocation
    requests: tuple[PaymentRequest, ...]

    def request_for(self, payer_id: str) -> PaymentRequest | None:
        for request in self.requests:
            if request.payer_id == payer_id:
                return request
        return None


class BillFinalizationService:
    """Aggregate a bill and open its payment requests in one session."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BillsplitConfig | None = None,
        aggregator: BillAggregator | None = None,
    ):
        self._config = config or BillsplitConfig()
        self._clock = clock or SystemClock()
        self._aggregator = aggregator or BillAggregator(self._config.split)
        self._parser = BillParser(self._config.split)
        self._requests = PaymentRequestService(
            session,
            clock=self._clock,
            default_payment_method=self._config.payments.default_payment_method,
            payment_methods=self._config.payments.payment_methods,
        )

    @property
    def payment_requests(self) -> PaymentRequestService:
        return self._requests

    def finalize_record(self, record: Mapping[str, Any]) -> Outcome[FinalizedBill]:
        """Parse a raw bill record, then finalize it."""
        parsed = self._parser.parse_bill(record)
        if not parsed.ok:
            return Outcome.fail(parsed.failure.error)
        return self.finalize(parsed.value)

    def finalize(self, bill: Bill) -> Outcome[FinalizedBill]:
        with LogContext.bind(bill_id=bill.id, actor_id=bill.creator_id):
            aggregated = self._aggregator.aggregate(bill)
            if not aggregated.ok:
                return Outcome.fail(aggregated.failure.error)
            allocation = aggregated.value

            description = self._config.payments.describe(bill.merchant)
            requests: list[PaymentRequest] = []
            for participant in allocation.participants:
                if participant.participant_id == bill.creator_id:
                    continue
                if not participant.total.is_positive:
                    continue
                created = self._requests.create(
                    payer_id=participant.participant_id,
                    payee_id=bill.creator_id,
                    amount=participant.total,
                    description=description,
                    bill_ref=bill.id,
                )
                if not created.ok:
                    logger.error("bill_finalization_failed", extra={
                        "payer_id": participant.participant_id,
                        "error_code": created.failure.code,
                    })
                    return Outcome.fail(created.failure.error)
                requests.append(created.value)

            logger.info("bill_finalized", extra={
                "request_count": len(requests),
                "bill_total": str(allocation.total.amount),
                "currency": allocation.currency.code,
            })
            return Outcome.success(FinalizedBill(allocation, tuple(requests)))
