"""
ApplicationService -- owner-side lifecycle of a new registration draft.

Responsibility:
    Creates a new-registration draft with its application number, lets the
    owner edit it while it is editable, and hard-deletes a draft the owner
    no longer wants (new registrations, service requests and legacy
    drafts alike).

Architecture position:
    Kernel > Services -- imperative shell.
    Submission and every later status change go through WorkflowService.

Invariants enforced:
    - Capacity: every create/update passes through
      ``RoomBreakdown.validated`` so ``total_rooms`` equals the category sum
      and stays within ``[1, max_rooms_allowed]``.
    - Discard is a hard delete of the application and its documents, and is
      only permitted while status is exactly ``draft``.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - InvalidRoomBreakdownError / RoomLimitExceededError: bad room counts.
    - InvalidValidityTierError: validity not one of the policy tiers.
    - ValidationError(field="category"): unknown category.
    - DraftRequiredError: edit/discard outside the permitted statuses.
    - NotApplicationOwnerError / RoleNotPermittedError.

Audit relevance:
    Drafts carry no action rows (a discarded draft leaves nothing behind);
    the audit trail starts at submission.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from homestay_kernel.domain.actors import Actor, Role
from homestay_kernel.domain.authorization import require_owner, require_role
from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.dtos import ApplicationView
from homestay_kernel.domain.intake import ApplicationDraft
from homestay_kernel.domain.policy import PortalPolicy
from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.statuses import (
    EDITABLE_STATUSES,
    ApplicationKind,
    ApplicationStatus,
    Category,
)
from homestay_kernel.exceptions import (
    DraftRequiredError,
    InvalidServiceRequestError,
    InvalidValidityTierError,
    ValidationError,
)
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import Application
from homestay_kernel.services.base import BaseService
from homestay_kernel.services.numbering_service import NumberingService

logger = get_logger("services.application")

_OWNER = frozenset({Role.PROPERTY_OWNER})


def validate_category(category: str | None) -> str | None:
    if category is None:
        return None
    try:
        return Category(category).value
    except ValueError:
        raise ValidationError(
            f"Unknown category {category!r}",
            field="category",
            attempted=category,
        ) from None


def validate_validity_years(years: int | None, tiers: tuple[int, ...]) -> int | None:
    if years is not None and years not in tiers:
        raise InvalidValidityTierError(years, tiers)
    return years


class ApplicationService(BaseService):
    """
    Owner operations on draft applications.

    Contract:
        Returns frozen ``ApplicationView`` DTOs.  All writes flush within
        the caller's transaction.

    Non-goals:
        - Does NOT submit (WorkflowService owns every status change).
        - Does NOT create service requests (ServiceRequestService).
    """

    def __init__(
        self,
        session: Session,
        policy: PortalPolicy,
        clock: Clock | None = None,
        numbering: NumberingService | None = None,
    ):
        super().__init__(session)
        self._policy = policy
        self._clock = clock or SystemClock()
        self._numbering = numbering or NumberingService(session, policy)

    def _rooms(self, draft: ApplicationDraft) -> RoomBreakdown:
        return RoomBreakdown.validated(
            draft.total_rooms,
            draft.single_bed_rooms,
            draft.double_bed_rooms,
            draft.family_suites,
            self._policy.max_rooms_allowed,
        )

    def create_draft(self, actor: Actor, draft: ApplicationDraft) -> ApplicationView:
        """
        Create a new-registration draft owned by ``actor``.

        Postconditions:
            - Status is ``draft`` and an application number is allocated.
        """
        require_role(actor, _OWNER, "create_application")
        rooms = self._rooms(draft)
        category = validate_category(draft.category)
        validity = validate_validity_years(
            draft.certificate_validity_years, self._policy.validity_tiers,
        )

        now = self._clock.now()
        year = self._clock.today(self._policy.timezone).year
        application = Application(
            application_number=self._numbering.next_application_number(draft.district, year),
            user_id=actor.user_id,
            application_kind=ApplicationKind.NEW_REGISTRATION.value,
            status=ApplicationStatus.DRAFT.value,
            property_name=draft.property_name,
            owner_name=draft.owner_name,
            owner_mobile=draft.owner_mobile,
            district=draft.district,
            tehsil=draft.tehsil,
            address=draft.address,
            pincode=draft.pincode,
            category=category,
            certificate_validity_years=validity,
            created_at=now,
            updated_at=now,
        )
        application.set_rooms(rooms)
        self.session.add(application)
        self.session.flush()

        logger.info(
            "application_draft_created",
            extra={
                "application_id": str(application.id),
                "application_number": application.application_number,
                "district": application.district,
                "total_rooms": rooms.total,
            },
        )
        return application.to_dto()

    def update_details(
        self,
        application_id: UUID,
        actor: Actor,
        draft: ApplicationDraft,
    ) -> ApplicationView:
        """
        Replace the owner-entered fields of a new registration.

        Allowed while the application is ``draft`` or ``correction_required``.
        The application number is not reallocated if the district changes.
        """
        application = self._lock_application(application_id)
        require_owner(actor, application.user_id, "update_application")
        if application.current_status not in EDITABLE_STATUSES:
            raise DraftRequiredError(application.id, application.status, "update")
        if application.kind is not ApplicationKind.NEW_REGISTRATION:
            raise InvalidServiceRequestError(
                f"{application.application_kind} details are fixed when the request is created",
                field="application_kind",
                current=application.application_kind,
            )

        rooms = self._rooms(draft)
        application.category = validate_category(draft.category)
        application.certificate_validity_years = validate_validity_years(
            draft.certificate_validity_years, self._policy.validity_tiers,
        )
        application.property_name = draft.property_name
        application.owner_name = draft.owner_name
        application.owner_mobile = draft.owner_mobile
        application.district = draft.district
        application.tehsil = draft.tehsil
        application.address = draft.address
        application.pincode = draft.pincode
        application.set_rooms(rooms)
        application.updated_at = self._clock.now()
        self._flush("Application", application.id)

        logger.info(
            "application_details_updated",
            extra={
                "application_id": str(application.id),
                "status": application.status,
                "total_rooms": rooms.total,
            },
        )
        return application.to_dto()

    def discard_draft(self, application_id: UUID, actor: Actor) -> None:
        """
        Hard-delete a draft and its documents.

        Raises:
            DraftRequiredError: status is anything other than ``draft``.
        """
        application = self._lock_application(application_id)
        require_owner(actor, application.user_id, "discard_draft")
        if application.current_status is not ApplicationStatus.DRAFT:
            raise DraftRequiredError(application.id, application.status, "discard")

        number = application.application_number
        document_count = len(application.documents)
        self.session.delete(application)
        self.session.flush()

        logger.info(
            "application_draft_discarded",
            extra={
                "application_id": str(application_id),
                "application_number": number,
                "documents_deleted": document_count,
            },
        )
