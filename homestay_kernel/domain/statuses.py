"""
Closed vocabularies for the application lifecycle.

Statuses, application kinds, document types, payment statuses and property
categories.  Every persisted string column that holds one of these values
has a matching CheckConstraint built from the same enum.

``status`` is the single source of truth for where an application is.
The dashboard grouping label is derived by ``stage_for`` on every read and
is never stored.
"""

from enum import Enum, unique


@unique
class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_SCRUTINY = "under_scrutiny"
    FORWARDED_TO_DTDO = "forwarded_to_dtdo"
    DTDO_REVIEW = "dtdo_review"
    INSPECTION_SCHEDULED = "inspection_scheduled"
    INSPECTION_UNDER_REVIEW = "inspection_under_review"
    VERIFIED_FOR_PAYMENT = "verified_for_payment"
    PAYMENT_PENDING = "payment_pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CORRECTION_REQUIRED = "correction_required"
    SUPERSEDED = "superseded"
    LEGACY_RC_REVIEW = "legacy_rc_review"


@unique
class ApplicationKind(str, Enum):
    NEW_REGISTRATION = "new_registration"
    EXISTING_RC_ONBOARDING = "existing_rc_onboarding"
    ADD_ROOMS = "add_rooms"
    DELETE_ROOMS = "delete_rooms"
    CHANGE_CATEGORY = "change_category"
    CANCEL_CERTIFICATE = "cancel_certificate"
    RENEWAL = "renewal"


@unique
class DocumentType(str, Enum):
    OWNERSHIP_PROOF = "ownership_proof"
    OWNER_IDENTITY_PROOF = "owner_identity_proof"
    LEGACY_CERTIFICATE = "legacy_certificate"
    PROPERTY_PHOTO = "property_photo"
    REVENUE_PAPERS = "revenue_papers"
    CANCELLATION_REQUEST = "cancellation_request"


@unique
class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@unique
class Category(str, Enum):
    DIAMOND = "diamond"
    GOLD = "gold"
    SILVER = "silver"


# Statuses after which an application never moves again.
TERMINAL_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
    ApplicationStatus.SUPERSEDED,
})

# A service request in any other status (draft included) blocks a new one.
INACTIVE_REQUEST_STATUSES = TERMINAL_STATUSES

SERVICE_REQUEST_KINDS: frozenset[ApplicationKind] = frozenset({
    ApplicationKind.ADD_ROOMS,
    ApplicationKind.DELETE_ROOMS,
    ApplicationKind.CHANGE_CATEGORY,
    ApplicationKind.CANCEL_CERTIFICATE,
    ApplicationKind.RENEWAL,
})

ROOM_DELTA_KINDS: frozenset[ApplicationKind] = frozenset({
    ApplicationKind.ADD_ROOMS,
    ApplicationKind.DELETE_ROOMS,
})

# Editable by the owner: documents may be replaced, fields changed.
EDITABLE_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.DRAFT,
    ApplicationStatus.CORRECTION_REQUIRED,
})


_STAGES: dict[ApplicationStatus, str] = {
    ApplicationStatus.DRAFT: "Draft",
    ApplicationStatus.SUBMITTED: "Scrutiny",
    ApplicationStatus.UNDER_SCRUTINY: "Scrutiny",
    ApplicationStatus.FORWARDED_TO_DTDO: "District Review",
    ApplicationStatus.DTDO_REVIEW: "District Review",
    ApplicationStatus.INSPECTION_SCHEDULED: "Inspection",
    ApplicationStatus.INSPECTION_UNDER_REVIEW: "Inspection",
    ApplicationStatus.VERIFIED_FOR_PAYMENT: "Payment",
    ApplicationStatus.PAYMENT_PENDING: "Payment",
    ApplicationStatus.APPROVED: "Approved",
    ApplicationStatus.REJECTED: "Rejected",
    ApplicationStatus.CORRECTION_REQUIRED: "Correction Required",
    ApplicationStatus.SUPERSEDED: "Superseded",
    ApplicationStatus.LEGACY_RC_REVIEW: "RC Verification",
}


def stage_for(status: ApplicationStatus | str) -> str:
    """Dashboard grouping label for a status."""
    return _STAGES[ApplicationStatus(status)]


def sql_in(values) -> str:
    """Render enum members as a SQL IN list for check constraints / partial indexes."""
    return ", ".join(sorted(f"'{v.value}'" for v in values))
