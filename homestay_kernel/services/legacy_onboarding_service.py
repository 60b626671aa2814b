"""
LegacyOnboardingService -- existing certificate holders joining the portal.

Responsibility:
    Owners who already hold a registration certificate attest it instead of
    registering afresh.  The owner keeps one editable draft (upsert), then
    submits it into ``legacy_rc_review``; an Admin-RC officer approves or
    rejects it.  Approval adopts the attested RC number as the application's
    certificate number.

Architecture position:
    Kernel > Services.  Status changes are delegated to WorkflowService
    (``LEGACY_WORKFLOW``, via ``service_transition``) so they share
    authorization, locking and audit.  This service is the only route into
    the legacy transitions; the generic ``transition`` call refuses them.

Invariants enforced:
    - RC numbers are unique across every application (minted certificates
      and attested RC numbers alike); the owner's own draft is exempt.
    - ``rc_issue_date >= legacy_rc_min_issue_date`` (policy cutoff, may be
      overridden by an administrator).
    - ``rc_expiry_date > rc_issue_date``.
    - One draft and one request under review per owner (checked here,
      backed by partial unique indexes).
    - Legacy application numbers use the ``LG-HS`` prefix and a serial that
      never starts below the administrator seed.

Failure modes:
    - IncompleteApplicationError, MissingDocumentsError, LegacyCutoffError,
      CertificateDateError (Validation).
    - DuplicateCertificateNumberError, ActiveLegacyRequestExistsError
      (Conflict).
"""

from datetime import date
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from homestay_kernel.domain.actors import ADMIN_RC_ROLES, Actor, Role
from homestay_kernel.domain.authorization import require_role
from homestay_kernel.domain.certificates import add_years
from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.dtos import ApplicationView, TransitionResult
from homestay_kernel.domain.intake import LegacyIntake
from homestay_kernel.domain.policy import PortalPolicy
from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.service_context import LegacyOnboardingContext
from homestay_kernel.domain.statuses import ApplicationKind, ApplicationStatus
from homestay_kernel.domain.workflows import (
    APPROVE_LEGACY,
    REJECT_LEGACY,
    SUBMIT_LEGACY,
)
from homestay_kernel.exceptions import (
    ActiveLegacyRequestExistsError,
    CertificateDateError,
    ConcurrentModificationError,
    DuplicateCertificateNumberError,
    IncompleteApplicationError,
    LegacyCutoffError,
    MissingDocumentsError,
)
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import Application
from homestay_kernel.services.application_service import validate_category
from homestay_kernel.services.base import BaseService
from homestay_kernel.services.document_service import DocumentService
from homestay_kernel.services.numbering_service import NumberingService
from homestay_kernel.services.workflow_service import WorkflowService

logger = get_logger("services.legacy_onboarding")

_OWNER = frozenset({Role.PROPERTY_OWNER})
_LEGACY = ApplicationKind.EXISTING_RC_ONBOARDING.value


def whole_years_between(issued: date | None, expiry: date | None) -> int | None:
    """Validity in whole years when ``expiry`` is an exact anniversary of ``issued``."""
    if issued is None or expiry is None:
        return None
    years = expiry.year - issued.year
    if years >= 1 and add_years(issued, years) == expiry:
        return years
    return None


class LegacyOnboardingService(BaseService):
    """
    Legacy RC onboarding track.

    Contract:
        Draft operations return ``ApplicationView``; submit, approve and
        reject return the ``TransitionResult`` of the workflow step.
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
        self._documents = DocumentService(session, self._clock)
        self._workflow = WorkflowService(
            session, policy, self._clock, numbering=self._numbering,
        )

    # -- queries -----------------------------------------------------------

    def _owned(self, user_id: UUID, status: ApplicationStatus) -> Application | None:
        return self.session.execute(
            select(Application)
            .where(Application.user_id == user_id)
            .where(Application.application_kind == _LEGACY)
            .where(Application.status == status.value)
            .with_for_update()
        ).scalars().first()

    def _ensure_rc_available(self, rc_number: str, own_id: UUID | None) -> None:
        stmt = select(Application.id).where(
            or_(
                Application.certificate_number == rc_number,
                Application.legacy_rc_number == rc_number,
            )
        )
        if own_id is not None:
            stmt = stmt.where(Application.id != own_id)
        if self.session.execute(stmt.limit(1)).first() is not None:
            raise DuplicateCertificateNumberError(rc_number)

    # -- draft -------------------------------------------------------------

    def _apply_intake(self, application: Application, intake: LegacyIntake) -> None:
        total = intake.total_rooms or 0
        if total:
            rooms = RoomBreakdown.validated(total, total, 0, 0, self._policy.max_rooms_allowed)
        else:
            rooms = RoomBreakdown()
        application.set_rooms(rooms)
        application.owner_name = intake.owner_name
        application.owner_mobile = intake.owner_mobile
        application.property_name = intake.property_name
        application.district = intake.district
        application.tehsil = intake.tehsil
        application.address = intake.address
        application.pincode = intake.pincode
        application.category = validate_category(intake.category)
        application.legacy_rc_number = (intake.rc_number or "").strip() or None
        application.certificate_issued_date = intake.rc_issue_date
        application.certificate_expiry_date = intake.rc_expiry_date
        application.certificate_validity_years = whole_years_between(
            intake.rc_issue_date, intake.rc_expiry_date,
        )
        application.notes = intake.note
        application.service_context = LegacyOnboardingContext(
            requested_rooms_total=intake.total_rooms,
            guardian_name=intake.guardian_name,
            inherits_certificate_expiry=intake.rc_expiry_date,
            note=intake.note,
        )
        application.updated_at = self._clock.now()

    def _upsert_draft(self, actor: Actor, intake: LegacyIntake) -> Application:
        draft = self._owned(actor.user_id, ApplicationStatus.DRAFT)
        rc_number = (intake.rc_number or "").strip()
        if rc_number:
            self._ensure_rc_available(rc_number, draft.id if draft else None)

        if draft is not None:
            self._apply_intake(draft, intake)
            self._flush("Application", draft.id)
            return draft

        now = self._clock.now()
        year = self._clock.today(self._policy.timezone).year
        draft = Application(
            application_number=self._numbering.next_legacy_application_number(
                intake.district, year, self._policy.legacy_serial_seed,
            ),
            user_id=actor.user_id,
            application_kind=_LEGACY,
            status=ApplicationStatus.DRAFT.value,
            created_at=now,
        )
        self._apply_intake(draft, intake)
        try:
            with self.session.begin_nested():
                self.session.add(draft)
                self.session.flush()
        except IntegrityError:
            if rc_number:
                self._ensure_rc_available(rc_number, None)
            raise ConcurrentModificationError("LegacyDraft", actor.user_id) from None
        return draft

    def save_draft(self, actor: Actor, intake: LegacyIntake) -> ApplicationView:
        """
        Create or overwrite the owner's single legacy draft.

        Partial data is allowed.  Documents given in ``intake`` replace the
        draft's documents; an empty upload set keeps the current ones.
        """
        require_role(actor, _OWNER, "save_legacy_draft")
        draft = self._upsert_draft(actor, intake)
        if intake.documents:
            self._documents.replace_all(draft, intake.documents)
        logger.info(
            "legacy_draft_saved",
            extra={
                "application_id": str(draft.id),
                "application_number": draft.application_number,
                "document_count": len(intake.documents),
            },
        )
        return draft.to_dto()

    # -- submission and review ---------------------------------------------

    def _require_documents(self, application: Application) -> None:
        present = {d.document_type for d in application.documents}
        missing = sorted(
            d.value for d in self._policy.required_documents_for(_LEGACY)
            if d.value not in present
        )
        if missing:
            raise MissingDocumentsError(missing)

    def submit(self, actor: Actor, intake: LegacyIntake) -> TransitionResult:
        """
        Submit the onboarding request for Admin-RC verification.

        Promotes the owner's draft (creating it if needed) to
        ``legacy_rc_review``.
        """
        require_role(actor, _OWNER, SUBMIT_LEGACY)
        missing = intake.missing_fields()
        if missing:
            raise IncompleteApplicationError(missing)

        under_review = self._owned(actor.user_id, ApplicationStatus.LEGACY_RC_REVIEW)
        if under_review is not None:
            raise ActiveLegacyRequestExistsError(
                actor.user_id, under_review.id, under_review.application_number,
            )

        cutoff = self._policy.legacy_rc_min_issue_date
        if intake.rc_issue_date < cutoff:
            raise LegacyCutoffError(intake.rc_issue_date, cutoff)
        if intake.rc_expiry_date <= intake.rc_issue_date:
            raise CertificateDateError(intake.rc_issue_date, intake.rc_expiry_date)

        draft = self._upsert_draft(actor, intake)
        if intake.documents:
            self._documents.replace_all(draft, intake.documents)
        self._require_documents(draft)

        result = self._workflow.service_transition(
            draft.id,
            SUBMIT_LEGACY,
            actor,
            expected_status=ApplicationStatus.DRAFT,
            feedback=f"Existing RC {draft.legacy_rc_number} submitted for verification",
        )

        logger.info(
            "legacy_request_submitted",
            extra={
                "application_id": str(draft.id),
                "application_number": draft.application_number,
                "rc_issue_date": intake.rc_issue_date,
            },
        )
        return result

    def approve(
        self,
        application_id: UUID,
        actor: Actor,
        feedback: str | None = None,
    ) -> TransitionResult:
        """Admin-RC approval; the attested RC number becomes the certificate number."""
        require_role(actor, ADMIN_RC_ROLES, APPROVE_LEGACY)
        application = self.session.get(Application, application_id)
        if application is not None and application.legacy_rc_number:
            self._ensure_rc_available(application.legacy_rc_number, application.id)
        return self._workflow.service_transition(
            application_id, APPROVE_LEGACY, actor, feedback=feedback,
        )

    def reject(
        self,
        application_id: UUID,
        actor: Actor,
        feedback: str | None = None,
    ) -> TransitionResult:
        return self._workflow.service_transition(
            application_id, REJECT_LEGACY, actor, feedback=feedback,
        )
