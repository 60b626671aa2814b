"""
Caller input value objects.

What the boundary layer hands the kernel when an owner fills a form: a new
registration draft, a legacy RC onboarding intake, a document upload
reference.  Frozen; validation happens in the services that consume them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from homestay_kernel.domain.statuses import DocumentType


@dataclass(frozen=True)
class DocumentUpload:
    """Reference to a file already stored by the external object store."""

    document_type: DocumentType | str
    file_name: str
    file_path: str
    mime_type: str
    file_size: int = 0


@dataclass(frozen=True)
class ApplicationDraft:
    """Owner-entered fields of a new registration."""

    property_name: str
    owner_name: str
    district: str
    address: str
    category: str
    total_rooms: int
    single_bed_rooms: int = 0
    double_bed_rooms: int = 0
    family_suites: int = 0
    owner_mobile: str | None = None
    tehsil: str | None = None
    pincode: str | None = None
    certificate_validity_years: int | None = None


@dataclass(frozen=True)
class LegacyIntake:
    """Existing-owner RC onboarding form.

    Every field is optional so a draft can be saved part-way; ``submit``
    checks completeness.
    """

    owner_name: str | None = None
    owner_mobile: str | None = None
    guardian_name: str | None = None
    property_name: str | None = None
    district: str | None = None
    tehsil: str | None = None
    address: str | None = None
    pincode: str | None = None
    category: str | None = None
    total_rooms: int | None = None
    rc_number: str | None = None
    rc_issue_date: date | None = None
    rc_expiry_date: date | None = None
    note: str | None = None
    documents: tuple[DocumentUpload, ...] = field(default_factory=tuple)

    REQUIRED_FIELDS = (
        "owner_name",
        "property_name",
        "district",
        "tehsil",
        "address",
        "pincode",
        "total_rooms",
        "rc_number",
        "rc_issue_date",
        "rc_expiry_date",
    )

    def missing_fields(self) -> list[str]:
        return [
            name for name in self.REQUIRED_FIELDS
            if getattr(self, name) in (None, "")
        ]
