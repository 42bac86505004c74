"""Kernel services: database-backed operations over the pure domain."""

from billsplit_kernel.services.payment_request_service import (
    Direction,
    PaymentRequestService,
)

__all__ = ["Direction", "PaymentRequestService"]
