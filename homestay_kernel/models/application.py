"""
Module: homestay_kernel.models.application
Responsibility: ORM persistence for licensing applications: new registrations,
    service requests against an approved parent, and legacy RC onboarding.

Architecture position: Kernel > Models.  May import from db/ and domain/
    (pure value objects only).

Invariants enforced:
    - Closed vocabularies: CHECK constraints limit status, kind and category.
    - Capacity: CHECK total_rooms = single + double + family, and
      total_rooms >= 1 except for a partially filled legacy draft.
    - Unique application_number; unique certificate_number.  An attested
      legacy RC number lives in legacy_rc_number (also unique) and is copied
      into certificate_number only when the onboarding is approved.
    - One active service request per parent: partial UNIQUE index on
      parent_application_id while status is not approved/rejected/superseded.
    - One legacy draft and one legacy request under review per user:
      partial UNIQUE indexes on user_id.
    - Serialised writers: ``version`` is the optimistic version column; a
      flush against a stale version raises StaleDataError.

Failure modes:
    - IntegrityError on any unique / partial unique violation.
    - StaleDataError when another transaction updated the row first.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homestay_kernel.db.base import TrackedBase, UUIDString
from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.service_context import (
    ServiceContext,
    encode_service_context,
    parse_service_context,
)
from homestay_kernel.domain.statuses import (
    INACTIVE_REQUEST_STATUSES,
    ApplicationKind,
    ApplicationStatus,
    Category,
    sql_in,
)

if TYPE_CHECKING:
    from homestay_kernel.domain.dtos import ApplicationView
    from homestay_kernel.models.document import Document

_INACTIVE = sql_in(INACTIVE_REQUEST_STATUSES)
_LEGACY = ApplicationKind.EXISTING_RC_ONBOARDING.value

_ACTIVE_CHILD_WHERE = text(
    f"parent_application_id IS NOT NULL AND status NOT IN ({_INACTIVE})"
)
_LEGACY_DRAFT_WHERE = text(f"application_kind = '{_LEGACY}' AND status = 'draft'")
_LEGACY_REVIEW_WHERE = text(
    f"application_kind = '{_LEGACY}' AND status = 'legacy_rc_review'"
)


class Application(TrackedBase):
    """Persistent application.

    Contract:
        ``status`` is the only lifecycle field; the dashboard stage is
        derived at read time.  Status changes go through WorkflowService,
        LegacyOnboardingService or PaymentSettlementService, never through
        direct assignment by callers.

    Guarantees:
        - Room columns always satisfy the capacity CHECK.
        - ``certificate_number`` is assigned once; services never clear it.
    """

    __tablename__ = "applications"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in(ApplicationStatus)})",
            name="ck_applications_valid_status",
        ),
        CheckConstraint(
            f"application_kind IN ({sql_in(ApplicationKind)})",
            name="ck_applications_valid_kind",
        ),
        CheckConstraint(
            f"category IS NULL OR category IN ({sql_in(Category)})",
            name="ck_applications_valid_category",
        ),
        CheckConstraint(
            "total_rooms = single_bed_rooms + double_bed_rooms + family_suites",
            name="ck_applications_room_sum",
        ),
        CheckConstraint(
            "single_bed_rooms >= 0 AND double_bed_rooms >= 0 AND family_suites >= 0",
            name="ck_applications_room_non_negative",
        ),
        CheckConstraint(
            f"total_rooms >= 1 OR (status = 'draft' AND application_kind = '{_LEGACY}')",
            name="ck_applications_room_minimum",
        ),
        Index(
            "ix_applications_one_active_child",
            "parent_application_id",
            unique=True,
            postgresql_where=_ACTIVE_CHILD_WHERE,
            sqlite_where=_ACTIVE_CHILD_WHERE,
        ),
        Index(
            "ix_applications_one_legacy_draft",
            "user_id",
            unique=True,
            postgresql_where=_LEGACY_DRAFT_WHERE,
            sqlite_where=_LEGACY_DRAFT_WHERE,
        ),
        Index(
            "ix_applications_one_legacy_review",
            "user_id",
            unique=True,
            postgresql_where=_LEGACY_REVIEW_WHERE,
            sqlite_where=_LEGACY_REVIEW_WHERE,
        ),
        Index("ix_applications_owner_status", "user_id", "status"),
        Index("ix_applications_district_status", "district", "status"),
        Index("ix_applications_parent", "parent_application_id"),
    )

    application_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    application_kind: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ApplicationStatus.DRAFT.value
    )

    parent_application_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("applications.id"), nullable=True,
    )
    parent_application_number: Mapped[str | None] = mapped_column(String(64), nullable=True)

    property_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    owner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    owner_mobile: Mapped[str | None] = mapped_column(String(20), nullable=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tehsil: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(10), nullable=True)
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)

    total_rooms: Mapped[int] = mapped_column(nullable=False, default=0)
    single_bed_rooms: Mapped[int] = mapped_column(nullable=False, default=0)
    double_bed_rooms: Mapped[int] = mapped_column(nullable=False, default=0)
    family_suites: Mapped[int] = mapped_column(nullable=False, default=0)

    certificate_validity_years: Mapped[int | None] = mapped_column(nullable=True)
    certificate_number: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True,
    )
    certificate_issued_date: Mapped[date | None] = mapped_column(nullable=True)
    certificate_expiry_date: Mapped[date | None] = mapped_column(nullable=True)
    legacy_rc_number: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True,
    )

    service_context_payload: Mapped[dict[str, Any] | None] = mapped_column(
        "service_context", nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    documents: Mapped[list[Document]] = relationship(
        "Document",
        back_populates="application",
        order_by="Document.uploaded_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Application {self.application_number} "
            f"{self.application_kind} status={self.status}>"
        )

    # -- typed accessors ---------------------------------------------------

    @property
    def kind(self) -> ApplicationKind:
        return ApplicationKind(self.application_kind)

    @property
    def current_status(self) -> ApplicationStatus:
        return ApplicationStatus(self.status)

    @property
    def rooms(self) -> RoomBreakdown:
        return RoomBreakdown(
            single=self.single_bed_rooms,
            double=self.double_bed_rooms,
            family=self.family_suites,
        )

    def set_rooms(self, rooms: RoomBreakdown) -> None:
        """Overwrite all four room columns together."""
        self.single_bed_rooms = rooms.single
        self.double_bed_rooms = rooms.double
        self.family_suites = rooms.family
        self.total_rooms = rooms.total

    @property
    def service_context(self) -> ServiceContext | None:
        return parse_service_context(self.application_kind, self.service_context_payload)

    @service_context.setter
    def service_context(self, context: ServiceContext | None) -> None:
        self.service_context_payload = (
            None if context is None
            else encode_service_context(self.application_kind, context)
        )

    @property
    def is_service_request(self) -> bool:
        return self.parent_application_id is not None

    def to_dto(self) -> ApplicationView:
        """Convert ORM model to frozen read DTO."""
        from homestay_kernel.domain.dtos import ApplicationView
        from homestay_kernel.domain.statuses import stage_for

        return ApplicationView(
            id=self.id,
            application_number=self.application_number,
            user_id=self.user_id,
            application_kind=self.application_kind,
            status=self.status,
            stage=stage_for(self.status),
            parent_application_id=self.parent_application_id,
            parent_application_number=self.parent_application_number,
            property_name=self.property_name,
            owner_name=self.owner_name,
            district=self.district,
            category=self.category,
            rooms=self.rooms,
            certificate_validity_years=self.certificate_validity_years,
            certificate_number=self.certificate_number,
            certificate_issued_date=self.certificate_issued_date,
            certificate_expiry_date=self.certificate_expiry_date,
            service_context=self.service_context,
            submitted_at=self.submitted_at,
            approved_at=self.approved_at,
            created_at=self.created_at,
        )
