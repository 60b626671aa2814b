"""
Typed Exception Hierarchy for the Homestay Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers at the boundary (API handlers, the excluded UI) must decide how to
render a failure without parsing message strings.  Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (field, current value, attempted value, ids)

Example - WRONG way to handle errors:
    try:
        portal.transition(app_id, "submit", actor)
    except Exception as e:
        if "already" in str(e):   # FRAGILE
            refetch()

Example - RIGHT way:
    try:
        portal.transition(app_id, "submit", actor)
    except StaleApplicationStateError as e:
        if e.current_status == e.target_status:
            pass                  # someone else already did it
        else:
            refetch()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from HomestayKernelError:

    HomestayKernelError (base)
    |
    +-- ValidationError                  caller input is wrong, nothing mutated
    |   +-- InvalidRoomBreakdownError
    |   +-- RoomLimitExceededError
    |   +-- RoomDeltaError
    |   +-- CertificateDateError
    |   +-- LegacyCutoffError
    |   +-- InvalidValidityTierError
    |   +-- InvalidServiceRequestError
    |   +-- ServiceContextMismatchError
    |   +-- MissingDocumentsError
    |   +-- IncompleteApplicationError
    |   +-- InvalidDocumentTypeError
    |   +-- InspectionToggleError
    |   +-- RenewalWindowClosedError
    |
    +-- ConflictError                    input valid, system state disagrees
    |   +-- StaleApplicationStateError
    |   +-- IllegalTransitionError
    |   +-- ConcurrentModificationError
    |   +-- ActiveServiceRequestExistsError
    |   +-- ActiveLegacyRequestExistsError
    |   +-- DuplicateCertificateNumberError
    |   +-- DuplicateApplicationNumberError
    |   +-- ParentNotApprovedError
    |   +-- DraftRequiredError
    |   +-- PaymentAlreadySettledError
    |
    +-- AuthorizationError               actor role / district / ownership
    |   +-- RoleNotPermittedError
    |   +-- DistrictScopeError
    |   +-- NotApplicationOwnerError
    |
    +-- NotFoundError
    |   +-- ApplicationNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- CertificateNotFoundError
    |
    +-- InternalError                    never rendered in detail
        +-- CertificateNumberExhaustedError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                           | When Raised
----------------|--------------------------------|------------------------------------
Validation      | INVALID_ROOM_BREAKDOWN         | total != single + double + family
                | ROOM_LIMIT_EXCEEDED            | target rooms > MAX_ROOMS_ALLOWED
                | INVALID_ROOM_DELTA             | zero delta, over-delete, below min
                | INVALID_CERTIFICATE_DATES      | expiry not after issue date
                | LEGACY_CUTOFF_VIOLATION        | RC issued before cutoff date
                | INVALID_VALIDITY_TIER          | validity years not in policy tiers
                | INVALID_SERVICE_REQUEST        | request shape wrong for its kind
                | SERVICE_CONTEXT_MISMATCH       | context variant != application kind
                | MISSING_DOCUMENTS              | required document types absent
                | INCOMPLETE_APPLICATION         | required fields absent at submit
                | INVALID_DOCUMENT_TYPE          | tag outside closed vocabulary
                | INSPECTION_TOGGLE_NOT_ALLOWED  | kind is never inspection-optional
                | RENEWAL_WINDOW_CLOSED          | renewal outside expiry window
----------------|--------------------------------|------------------------------------
Conflict        | STALE_APPLICATION_STATE        | expected status already advanced
                | ILLEGAL_TRANSITION             | action not legal from status
                | CONCURRENT_MODIFICATION        | optimistic version check failed
                | ACTIVE_SERVICE_REQUEST_EXISTS  | second in-flight request on parent
                | ACTIVE_LEGACY_REQUEST_EXISTS   | second legacy request under review
                | DUPLICATE_CERTIFICATE_NUMBER   | RC / certificate number taken
                | DUPLICATE_APPLICATION_NUMBER   | application number taken
                | PARENT_NOT_APPROVED            | parent is not approved
                | DRAFT_REQUIRED                 | draft-only operation on non-draft
----------------|--------------------------------|------------------------------------
Authorization   | ROLE_NOT_PERMITTED             | role cannot perform operation
                | DISTRICT_SCOPE_VIOLATION       | officer outside their district
                | NOT_APPLICATION_OWNER          | owner action by another user
----------------|--------------------------------|------------------------------------
Not found       | APPLICATION_NOT_FOUND          |
                | PAYMENT_NOT_FOUND              |
                | CERTIFICATE_NOT_FOUND          |
----------------|--------------------------------|------------------------------------
Internal        | CERTIFICATE_NUMBER_EXHAUSTED   | random suffix retries used up
                | IMMUTABILITY_VIOLATION         | update/delete of append-only row

===============================================================================
"""

from typing import Any


class HomestayKernelError(Exception):
    """
    Base exception for all homestay kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "HOMESTAY_KERNEL_ERROR"


# Validation errors


class ValidationError(HomestayKernelError):
    """Caller-supplied data is malformed or out of bounds."""

    code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        current: Any = None,
        attempted: Any = None,
    ):
        self.field = field
        self.current = current
        self.attempted = attempted
        super().__init__(message)


class InvalidRoomBreakdownError(ValidationError):
    """Room categories do not add up to the declared total, or total < 1."""

    code: str = "INVALID_ROOM_BREAKDOWN"

    def __init__(self, total_rooms: int, single: int, double: int, family: int):
        self.total_rooms = total_rooms
        self.single = single
        self.double = double
        self.family = family
        super().__init__(
            f"Room breakdown invalid: total {total_rooms} with "
            f"single={single}, double={double}, family={family}",
            field="total_rooms",
            current=single + double + family,
            attempted=total_rooms,
        )


class RoomLimitExceededError(ValidationError):
    """Resulting room count exceeds MAX_ROOMS_ALLOWED."""

    code: str = "ROOM_LIMIT_EXCEEDED"

    def __init__(self, target_rooms: int, max_rooms: int, current_rooms: int | None = None):
        self.target_rooms = target_rooms
        self.max_rooms = max_rooms
        super().__init__(
            f"Target of {target_rooms} rooms exceeds maximum of "
            f"{max_rooms} rooms allowed",
            field="total_rooms",
            current=current_rooms,
            attempted=target_rooms,
        )


class RoomDeltaError(ValidationError):
    """Room delta is empty, negative, or would break a per-category bound."""

    code: str = "INVALID_ROOM_DELTA"


class CertificateDateError(ValidationError):
    """Certificate expiry is not strictly after issue."""

    code: str = "INVALID_CERTIFICATE_DATES"

    def __init__(self, issue_date: Any, expiry_date: Any):
        self.issue_date = issue_date
        self.expiry_date = expiry_date
        super().__init__(
            f"Certificate expiry {expiry_date} must be after issue date {issue_date}",
            field="rc_expiry_date",
            current=issue_date,
            attempted=expiry_date,
        )


class LegacyCutoffError(ValidationError):
    """Legacy certificate was issued before the onboarding cutoff."""

    code: str = "LEGACY_CUTOFF_VIOLATION"

    def __init__(self, issue_date: Any, cutoff: Any):
        self.issue_date = issue_date
        self.cutoff = cutoff
        super().__init__(
            f"Certificates issued before {cutoff} are not eligible for onboarding",
            field="rc_issue_date",
            current=cutoff,
            attempted=issue_date,
        )


class InvalidValidityTierError(ValidationError):
    """Certificate validity years not one of the configured tiers."""

    code: str = "INVALID_VALIDITY_TIER"

    def __init__(self, years: Any, allowed: tuple[int, ...]):
        self.years = years
        self.allowed = allowed
        super().__init__(
            f"Certificate validity of {years} years is not one of {list(allowed)}",
            field="certificate_validity_years",
            current=list(allowed),
            attempted=years,
        )


class InvalidServiceRequestError(ValidationError):
    """Service request payload does not fit its kind."""

    code: str = "INVALID_SERVICE_REQUEST"


class ServiceContextMismatchError(ValidationError):
    """Stored service context variant does not match the application kind."""

    code: str = "SERVICE_CONTEXT_MISMATCH"

    def __init__(self, application_kind: str, context_kind: Any):
        self.application_kind = application_kind
        self.context_kind = context_kind
        super().__init__(
            f"Service context of kind {context_kind!r} cannot be attached "
            f"to a {application_kind} application",
            field="service_context",
            current=application_kind,
            attempted=context_kind,
        )


class MissingDocumentsError(ValidationError):
    """Required document types have not been uploaded."""

    code: str = "MISSING_DOCUMENTS"

    def __init__(self, missing: list[str]):
        self.missing = sorted(missing)
        super().__init__(
            f"Required documents missing: {', '.join(self.missing)}",
            field="documents",
            attempted=self.missing,
        )


class IncompleteApplicationError(ValidationError):
    """Required fields are empty at submission time."""

    code: str = "INCOMPLETE_APPLICATION"

    def __init__(self, missing_fields: list[str]):
        self.missing_fields = sorted(missing_fields)
        super().__init__(
            f"Required fields missing: {', '.join(self.missing_fields)}",
            field=self.missing_fields[0] if self.missing_fields else None,
        )


class InvalidDocumentTypeError(ValidationError):
    """Document tag is outside the closed vocabulary."""

    code: str = "INVALID_DOCUMENT_TYPE"

    def __init__(self, document_type: Any):
        self.document_type = document_type
        super().__init__(
            f"Unknown document type: {document_type!r}",
            field="document_type",
            attempted=document_type,
        )


class InspectionToggleError(ValidationError):
    """Inspection cannot be disabled for a kind the policy never makes optional."""

    code: str = "INSPECTION_TOGGLE_NOT_ALLOWED"

    def __init__(self, application_kind: str):
        self.application_kind = application_kind
        super().__init__(
            f"Inspection is mandatory for {application_kind} and cannot be disabled",
            field="inspection_disabled_kinds",
            attempted=application_kind,
        )


class RenewalWindowClosedError(ValidationError):
    """Renewal requested outside [expiry - window, expiry]."""

    code: str = "RENEWAL_WINDOW_CLOSED"

    def __init__(self, expiry_date: Any, window_start: Any, today: Any):
        self.expiry_date = expiry_date
        self.window_start = window_start
        self.today = today
        super().__init__(
            f"Renewal is only open between {window_start} and {expiry_date}",
            field="certificate_expiry_date",
            current=expiry_date,
            attempted=today,
        )


# Conflict errors


class ConflictError(HomestayKernelError):
    """The request was valid but the stored state no longer permits it."""

    code: str = "CONFLICT"

    def __init__(self, message: str, *, current: Any = None, attempted: Any = None):
        self.current = current
        self.attempted = attempted
        super().__init__(message)


class StaleApplicationStateError(ConflictError):
    """Application status differs from the caller's expected precondition."""

    code: str = "STALE_APPLICATION_STATE"

    def __init__(
        self,
        application_id: Any,
        current_status: str,
        expected_status: str,
        target_status: str | None = None,
    ):
        self.application_id = application_id
        self.current_status = current_status
        self.expected_status = expected_status
        self.target_status = target_status
        super().__init__(
            f"Application {application_id} is {current_status}, "
            f"expected {expected_status}",
            current=current_status,
            attempted=target_status or expected_status,
        )


class IllegalTransitionError(ConflictError):
    """No transition for this action from the application's current status."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        application_id: Any,
        current_status: str,
        action: str,
        reason: str | None = None,
    ):
        self.application_id = application_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Action {action!r} is not permitted while application "
            f"{application_id} is {current_status}{detail}",
            current=current_status,
            attempted=action,
        )


class ConcurrentModificationError(ConflictError):
    """Optimistic version check failed; another transaction wrote first."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} was modified by another transaction"
        )


class ActiveServiceRequestExistsError(ConflictError):
    """The parent already has an in-flight service request."""

    code: str = "ACTIVE_SERVICE_REQUEST_EXISTS"

    def __init__(
        self,
        parent_application_id: Any,
        existing_application_id: Any = None,
        existing_application_number: str | None = None,
    ):
        self.parent_application_id = parent_application_id
        self.existing_application_id = existing_application_id
        self.existing_application_number = existing_application_number
        ref = existing_application_number or existing_application_id or "unknown"
        super().__init__(
            f"Application {parent_application_id} already has an active "
            f"service request ({ref})",
            current=existing_application_number,
        )


class ActiveLegacyRequestExistsError(ConflictError):
    """The user already has a legacy onboarding request under review."""

    code: str = "ACTIVE_LEGACY_REQUEST_EXISTS"

    def __init__(
        self,
        user_id: Any,
        existing_application_id: Any = None,
        existing_application_number: str | None = None,
    ):
        self.user_id = user_id
        self.existing_application_id = existing_application_id
        self.existing_application_number = existing_application_number
        super().__init__(
            "An existing RC onboarding request is already under review"
            + (f" ({existing_application_number})" if existing_application_number else ""),
            current=existing_application_number,
        )


class DuplicateCertificateNumberError(ConflictError):
    """Certificate / RC number already present on another application."""

    code: str = "DUPLICATE_CERTIFICATE_NUMBER"

    def __init__(self, certificate_number: str):
        self.certificate_number = certificate_number
        super().__init__(
            f"Certificate number {certificate_number} is already registered",
            attempted=certificate_number,
        )


class DuplicateApplicationNumberError(ConflictError):
    """Application number already allocated."""

    code: str = "DUPLICATE_APPLICATION_NUMBER"

    def __init__(self, application_number: str):
        self.application_number = application_number
        super().__init__(
            f"Application number {application_number} is already allocated",
            attempted=application_number,
        )


class ParentNotApprovedError(ConflictError):
    """Service requests may only target an approved parent."""

    code: str = "PARENT_NOT_APPROVED"

    def __init__(self, parent_application_id: Any, parent_status: str):
        self.parent_application_id = parent_application_id
        self.parent_status = parent_status
        super().__init__(
            f"Application {parent_application_id} is {parent_status}; "
            "service requests require an approved application",
            current=parent_status,
            attempted="approved",
        )


class PaymentAlreadySettledError(ConflictError):
    """A settled payment cannot be marked failed."""

    code: str = "PAYMENT_ALREADY_SETTLED"

    def __init__(self, payment_id: Any):
        self.payment_id = payment_id
        super().__init__(
            f"Payment {payment_id} is already settled",
            current="success",
            attempted="failed",
        )


class DraftRequiredError(ConflictError):
    """Operation only allowed while the application is still editable."""

    code: str = "DRAFT_REQUIRED"

    def __init__(self, application_id: Any, current_status: str, operation: str):
        self.application_id = application_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} application {application_id} in status {current_status}",
            current=current_status,
            attempted=operation,
        )


# Authorization errors


class AuthorizationError(HomestayKernelError):
    """Actor is not permitted to perform the operation."""

    code: str = "AUTHORIZATION_DENIED"


class RoleNotPermittedError(AuthorizationError):
    """The actor's role cannot perform this operation."""

    code: str = "ROLE_NOT_PERMITTED"

    def __init__(self, actor_id: Any, role: str, operation: str):
        self.actor_id = actor_id
        self.role = role
        self.operation = operation
        super().__init__(f"Role {role} may not perform {operation}")


class DistrictScopeError(AuthorizationError):
    """Officer acting outside their assigned district."""

    code: str = "DISTRICT_SCOPE_VIOLATION"

    def __init__(self, actor_id: Any, actor_district: str | None, operation: str):
        self.actor_id = actor_id
        self.actor_district = actor_district
        self.operation = operation
        super().__init__(f"Not permitted to {operation} outside assigned district")


class NotApplicationOwnerError(AuthorizationError):
    """Owner-only operation attempted by someone else."""

    code: str = "NOT_APPLICATION_OWNER"

    def __init__(self, actor_id: Any, operation: str):
        self.actor_id = actor_id
        self.operation = operation
        super().__init__(f"Not permitted to {operation} this application")


# Not-found errors


class NotFoundError(HomestayKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"


class ApplicationNotFoundError(NotFoundError):
    code: str = "APPLICATION_NOT_FOUND"

    def __init__(self, reference: Any):
        self.reference = reference
        super().__init__(f"Application not found: {reference}")


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: Any):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class DocumentNotFoundError(NotFoundError):
    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: Any):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class CertificateNotFoundError(NotFoundError):
    code: str = "CERTIFICATE_NOT_FOUND"

    def __init__(self, certificate_number: str):
        self.certificate_number = certificate_number
        super().__init__(f"Certificate not found: {certificate_number}")


# Internal errors


class InternalError(HomestayKernelError):
    """Unexpected failure; details are never shown to end users."""

    code: str = "INTERNAL_ERROR"


class CertificateNumberExhaustedError(InternalError):
    """Random certificate numbering could not find a free suffix."""

    code: str = "CERTIFICATE_NUMBER_EXHAUSTED"

    def __init__(self, year: int, attempts: int):
        self.year = year
        self.attempts = attempts
        super().__init__(
            f"No free certificate number for {year} after {attempts} attempts"
        )


class ImmutabilityViolationError(InternalError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: Any, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


# Boundary rendering

OPAQUE_INTERNAL_MESSAGE = "An internal error occurred. Please try again later."

_CATEGORIES: tuple[tuple[type[HomestayKernelError], str], ...] = (
    (ValidationError, "validation"),
    (ConflictError, "conflict"),
    (AuthorizationError, "authorization"),
    (NotFoundError, "not_found"),
)


def error_category(exc: BaseException) -> str:
    """Return the taxonomy category name for an exception."""
    for cls, name in _CATEGORIES:
        if isinstance(exc, cls):
            return name
    return "internal"


def describe_error(exc: BaseException) -> dict[str, Any]:
    """
    Render an exception for the boundary layer.

    Validation, conflict, authorization and not-found errors keep their
    code, message and field-level detail.  Anything else (including
    InternalError and non-kernel exceptions) collapses to an opaque payload.
    """
    category = error_category(exc)
    if category == "internal":
        return {
            "category": "internal",
            "code": InternalError.code,
            "message": OPAQUE_INTERNAL_MESSAGE,
        }

    payload: dict[str, Any] = {
        "category": category,
        "code": exc.code,
        "message": str(exc),
    }
    for key in ("field", "current", "attempted"):
        value = getattr(exc, key, None)
        if value is not None:
            payload[key] = value
    return payload
