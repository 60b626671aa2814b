"""
Read DTOs (``homestay_kernel.domain.dtos``).

Frozen dataclasses returned across the kernel boundary.  Services and
selectors never hand ORM instances to callers; they convert with the
models' ``to_dto()`` methods while the session is still open.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from homestay_kernel.domain.certificates import CertificateState
from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.service_context import ServiceContext


@dataclass(frozen=True)
class ApplicationView:
    id: UUID
    application_number: str
    user_id: UUID
    application_kind: str
    status: str
    stage: str
    parent_application_id: UUID | None
    parent_application_number: str | None
    property_name: str | None
    owner_name: str | None
    district: str | None
    category: str | None
    rooms: RoomBreakdown
    certificate_validity_years: int | None
    certificate_number: str | None
    certificate_issued_date: date | None
    certificate_expiry_date: date | None
    service_context: ServiceContext | None
    submitted_at: datetime | None
    approved_at: datetime | None
    created_at: datetime | None

    @property
    def total_rooms(self) -> int:
        return self.rooms.total


@dataclass(frozen=True)
class DocumentView:
    id: UUID
    application_id: UUID
    document_type: str
    file_name: str
    file_path: str
    file_size: int
    mime_type: str
    uploaded_at: datetime


@dataclass(frozen=True)
class PaymentView:
    id: UUID
    application_id: UUID
    amount: Decimal
    payment_status: str
    gateway_reference: str | None
    completed_at: datetime | None


@dataclass(frozen=True)
class ActionRecord:
    id: UUID
    application_id: UUID
    sequence: int
    actor_id: UUID
    actor_role: str
    action: str
    previous_status: str | None
    new_status: str
    feedback: str | None
    created_at: datetime


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of one workflow transition."""

    application: ApplicationView
    action: str
    from_status: str
    to_status: str
    payment: PaymentView | None = None


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of payment confirmation."""

    application: ApplicationView
    payment: PaymentView
    certificate_number: str
    certificate_issued_date: date
    certificate_expiry_date: date
    superseded_application_id: UUID | None = None


@dataclass(frozen=True)
class TrackingView:
    """Public tracking page: where an application is and how it got there."""

    application_number: str
    application_kind: str
    status: str
    stage: str
    property_name: str | None
    district: str | None
    submitted_at: datetime | None
    certificate_number: str | None
    timeline: tuple[ActionRecord, ...]


@dataclass(frozen=True)
class CertificateVerification:
    """Public certificate verification result."""

    certificate_number: str
    state: CertificateState
    application_number: str
    property_name: str | None
    owner_name: str | None
    district: str | None
    category: str | None
    total_rooms: int
    issued_date: date | None
    expiry_date: date | None
    superseded_by: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.state == CertificateState.VALID
