"""ORM models for the billsplit kernel."""

from billsplit_kernel.models.payment_request import PaymentRequestModel

__all__ = ["PaymentRequestModel"]
