"""
Module: billsplit_kernel.models.payment_request
Responsibility: ORM persistence for payment requests.

Architecture position: Kernel > Models.  May import from db/base.py and the
    domain layer (for DTO conversion).

Invariants enforced:
    - Check constraints: status is one of the lifecycle states,
      ``payer_id <> payee_id`` and ``amount > 0``.
    - Rows are never deleted; cancellation is a status
      (see db/immutability.py).
    - Status and detail changes go through compare-and-swap UPDATEs in
      PaymentRequestService, never through attribute assignment.
      ``version`` rises by one with every change.

Failure modes:
    - IntegrityError if a check constraint is violated.
    - ImmutabilityViolationError on DELETE, or on an ORM edit of a closed
      request.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billsplit_kernel.db.base import Base, MoneyAmount
from billsplit_kernel.domain.payment_request import PaymentRequest, PaymentStatus
from billsplit_kernel.domain.values import Money


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; stored values are always UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in PaymentStatus)


class PaymentRequestModel(Base):
    """Persistent payment request.

    Contract:
        Mirrors the frozen ``PaymentRequest`` domain snapshot one-to-one via
        ``to_dto`` / ``from_dto``.

    Guarantees:
        - ``status`` holds a normalized lifecycle value (never ``pending``).
        - ``amount`` round-trips exactly.
    """

    __tablename__ = "payment_requests"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_payment_requests_valid_status",
        ),
        CheckConstraint(
            "payer_id <> payee_id",
            name="ck_payment_requests_distinct_parties",
        ),
        CheckConstraint(
            "CAST(amount AS NUMERIC) > 0",
            name="ck_payment_requests_positive_amount",
        ),
        Index("ix_payment_requests_payer_status", "payer_id", "status", "created_at"),
        Index("ix_payment_requests_payee_status", "payee_id", "status", "created_at"),
        Index("ix_payment_requests_bill_ref", "bill_ref"),
    )

    payer_id: Mapped[str] = mapped_column(String(255), nullable=False)
    payee_id: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyAmount(), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False, default="manual")
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    bill_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return (
            f"<PaymentRequest {self.id} {self.payer_id}->{self.payee_id} "
            f"{self.amount} {self.currency} status={self.status}>"
        )

    def to_dto(self) -> PaymentRequest:
        """Convert ORM model to frozen domain snapshot."""
        return PaymentRequest(
            id=str(self.id),
            payer_id=self.payer_id,
            payee_id=self.payee_id,
            amount=Money.of(self.amount, self.currency).round(),
            status=PaymentStatus.parse(self.status),
            created_at=_aware(self.created_at),
            updated_at=_aware(self.updated_at),
            completed_at=_aware(self.completed_at),
            bill_ref=self.bill_ref,
            description=self.description,
            notes=self.notes,
            payment_method=self.payment_method,
            due_date=self.due_date,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: PaymentRequest) -> PaymentRequestModel:
        """Create ORM model from domain snapshot."""
        return cls(
            id=UUID(dto.id),
            payer_id=dto.payer_id,
            payee_id=dto.payee_id,
            amount=dto.amount.amount,
            currency=dto.amount.currency.code,
            status=dto.status.value,
            description=dto.description,
            notes=dto.notes,
            payment_method=dto.payment_method,
            due_date=dto.due_date,
            bill_ref=dto.bill_ref,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
            completed_at=dto.completed_at,
            version=dto.version,
        )
