"""
Module: homestay_kernel.models.payment
Responsibility: ORM persistence for fee payments.  A settled payment is the
    trigger for certificate issuance.

Architecture position: Kernel > Models.

Invariants enforced:
    - payment_status in (pending, success, failed) (CHECK).
    - completed_at is set iff payment_status = success (CHECK).
    - amount is positive (CHECK).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from homestay_kernel.db.base import TrackedBase, UUIDString
from homestay_kernel.domain.statuses import PaymentStatus, sql_in

if TYPE_CHECKING:
    from homestay_kernel.domain.dtos import PaymentView


class Payment(TrackedBase):
    """Fee payment owned by exactly one application."""

    __tablename__ = "payments"

    __table_args__ = (
        CheckConstraint(
            f"payment_status IN ({sql_in(PaymentStatus)})",
            name="ck_payments_valid_status",
        ),
        CheckConstraint(
            "(payment_status = 'success') = (completed_at IS NOT NULL)",
            name="ck_payments_completed_iff_success",
        ),
        CheckConstraint("amount > 0", name="ck_payments_positive_amount"),
        Index("ix_payments_application_status", "application_id", "payment_status"),
    )

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("applications.id"), nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value,
    )
    gateway_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.amount} status={self.payment_status}>"

    def to_dto(self) -> PaymentView:
        from homestay_kernel.domain.dtos import PaymentView

        return PaymentView(
            id=self.id,
            application_id=self.application_id,
            amount=self.amount,
            payment_status=self.payment_status,
            gateway_reference=self.gateway_reference,
            completed_at=self.completed_at,
        )
