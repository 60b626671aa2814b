"""
ServiceRequestService -- follow-on requests against an approved application.

Responsibility:
    Creates add-rooms, delete-rooms, change-category, cancellation and
    renewal requests.  Each request is a new application in ``draft`` that
    copies the parent's property data, carries a typed service context
    describing what was asked, and then travels through the shared review
    workflow.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - The parent must be ``approved`` when the request is created.
    - One active request per parent: the parent row is locked, existing
      requests are checked, and the partial unique index
      ``ix_applications_one_active_child`` rejects a concurrent second
      insert, which is reported as the same Conflict.
    - Room deltas keep the target inside ``[min_rooms_after_delete,
      max_rooms_allowed]`` and never delete more rooms than a category has.
    - Renewal only inside the renewal window.

Failure modes:
    - ParentNotApprovedError, ActiveServiceRequestExistsError (Conflict).
    - RoomDeltaError, RoomLimitExceededError, RenewalWindowClosedError,
      InvalidServiceRequestError (Validation).
    - NotApplicationOwnerError, ApplicationNotFoundError.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from homestay_kernel.domain.actors import Actor, Role
from homestay_kernel.domain.authorization import require_owner, require_role
from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.dtos import ApplicationView
from homestay_kernel.domain.eligibility import can_renew, renewal_window
from homestay_kernel.domain.policy import PortalPolicy
from homestay_kernel.domain.rooms import RoomBreakdown, validate_room_delta
from homestay_kernel.domain.service_context import (
    CancellationContext,
    CategoryChangeContext,
    RenewalContext,
    RoomDeltaContext,
    ServiceContext,
)
from homestay_kernel.domain.statuses import (
    INACTIVE_REQUEST_STATUSES,
    ROOM_DELTA_KINDS,
    SERVICE_REQUEST_KINDS,
    ApplicationKind,
    ApplicationStatus,
)
from homestay_kernel.exceptions import (
    ActiveServiceRequestExistsError,
    InvalidServiceRequestError,
    ParentNotApprovedError,
    RenewalWindowClosedError,
)
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import Application
from homestay_kernel.services.application_service import (
    validate_category,
    validate_validity_years,
)
from homestay_kernel.services.base import BaseService
from homestay_kernel.services.numbering_service import NumberingService

logger = get_logger("services.service_request")

_OWNER = frozenset({Role.PROPERTY_OWNER})


class ServiceRequestService(BaseService):
    """
    Creates service requests.

    Contract:
        ``create()`` returns the new draft as an ``ApplicationView``.

    Guarantees:
        - At most one non-terminal request per parent, under any
          interleaving of concurrent creators.

    Non-goals:
        - Does NOT discard drafts (ApplicationService.discard_draft).
        - Does NOT apply the outcome to the parent (SupersessionService).
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

    def active_request_for(self, parent_id: UUID) -> Application | None:
        """Most recent non-terminal service request on ``parent_id``."""
        return self.session.execute(
            select(Application)
            .where(Application.parent_application_id == parent_id)
            .where(Application.status.not_in([s.value for s in INACTIVE_REQUEST_STATUSES]))
            .order_by(Application.created_at.desc())
        ).scalars().first()

    def create(
        self,
        parent_id: UUID,
        actor: Actor,
        kind: ApplicationKind | str,
        *,
        room_delta: RoomBreakdown | None = None,
        target_category: str | None = None,
        reason: str | None = None,
        note: str | None = None,
        validity_years: int | None = None,
    ) -> ApplicationView:
        """
        Create a service request against an approved application.

        Args:
            parent_id: The approved application being amended.
            actor: The owner of the parent.
            kind: One of the service-request kinds.
            room_delta: Rooms to add or delete per category (add/delete).
            target_category: New category (change_category).
            reason: Why the certificate is surrendered (cancel_certificate).
            note: Free text kept in the service context.
            validity_years: Certificate tier for the new certificate;
                defaults to the parent's.

        Raises:
            ActiveServiceRequestExistsError: the parent already has one.
        """
        try:
            kind = ApplicationKind(kind)
        except ValueError:
            kind = None
        if kind not in SERVICE_REQUEST_KINDS:
            raise InvalidServiceRequestError(
                "Not a service request kind",
                field="application_kind",
                attempted=getattr(kind, "value", kind),
            )
        require_role(actor, _OWNER, "create_service_request")

        parent = self._lock_application(parent_id)
        require_owner(actor, parent.user_id, "create_service_request")
        if parent.current_status is not ApplicationStatus.APPROVED:
            raise ParentNotApprovedError(parent.id, parent.status)

        existing = self.active_request_for(parent.id)
        if existing is not None:
            raise ActiveServiceRequestExistsError(
                parent.id, existing.id, existing.application_number,
            )

        rooms, category, context = self._build_context(
            kind, parent, room_delta, target_category, reason, note,
        )

        validity = None
        if kind is not ApplicationKind.CANCEL_CERTIFICATE:
            validity = validate_validity_years(
                validity_years or parent.certificate_validity_years or self._policy.validity_tiers[0],
                self._policy.validity_tiers,
            )

        now = self._clock.now()
        year = self._clock.today(self._policy.timezone).year
        child = Application(
            application_number=self._numbering.next_application_number(parent.district, year),
            user_id=parent.user_id,
            application_kind=kind.value,
            status=ApplicationStatus.DRAFT.value,
            parent_application_id=parent.id,
            parent_application_number=parent.application_number,
            property_name=parent.property_name,
            owner_name=parent.owner_name,
            owner_mobile=parent.owner_mobile,
            district=parent.district,
            tehsil=parent.tehsil,
            address=parent.address,
            pincode=parent.pincode,
            category=category,
            certificate_validity_years=validity,
            notes=note,
            created_at=now,
            updated_at=now,
        )
        child.set_rooms(rooms)
        child.service_context = context

        try:
            with self.session.begin_nested():
                self.session.add(child)
                self.session.flush()
        except IntegrityError:
            winner = self.active_request_for(parent.id)
            if winner is None:
                raise
            logger.warning(
                "service_request_conflict",
                extra={
                    "parent_application_id": str(parent.id),
                    "existing_application_number": winner.application_number,
                },
            )
            raise ActiveServiceRequestExistsError(
                parent.id, winner.id, winner.application_number,
            ) from None

        logger.info(
            "service_request_created",
            extra={
                "application_id": str(child.id),
                "application_number": child.application_number,
                "application_kind": kind.value,
                "parent_application_id": str(parent.id),
                "requires_payment": context.requires_payment,
                "total_rooms": rooms.total,
            },
        )
        return child.to_dto()

    def _build_context(
        self,
        kind: ApplicationKind,
        parent: Application,
        room_delta: RoomBreakdown | None,
        target_category: str | None,
        reason: str | None,
        note: str | None,
    ) -> tuple[RoomBreakdown, str | None, ServiceContext]:
        """Validate the kind-specific request and return (rooms, category, context)."""
        charged = kind in self._policy.payment_required_kinds
        current = parent.rooms

        if kind in ROOM_DELTA_KINDS:
            if room_delta is None:
                raise InvalidServiceRequestError(
                    "Room changes are required", field="room_delta",
                )
            target = validate_room_delta(
                kind,
                current,
                room_delta,
                self._policy.max_rooms_allowed,
                self._policy.min_rooms_after_delete,
            )
            return target, parent.category, RoomDeltaContext(
                kind=kind,
                delta=room_delta,
                current_rooms=current,
                target_rooms=target,
                requires_payment=charged,
                note=note,
            )

        if kind is ApplicationKind.CHANGE_CATEGORY:
            target = validate_category(target_category)
            if target is None or target == parent.category:
                raise InvalidServiceRequestError(
                    "Choose a category different from the current one",
                    field="category",
                    current=parent.category,
                    attempted=target,
                )
            return current, target, CategoryChangeContext(
                from_category=parent.category,
                to_category=target,
                requires_payment=charged,
                note=note,
            )

        if kind is ApplicationKind.CANCEL_CERTIFICATE:
            if not (reason or "").strip():
                raise InvalidServiceRequestError(
                    "A reason for cancellation is required", field="reason",
                )
            return current, parent.category, CancellationContext(
                reason=reason.strip(), requires_payment=charged,
            )

        today = self._clock.today(self._policy.timezone)
        expiry = parent.certificate_expiry_date
        if not can_renew(expiry, today, self._policy.renewal_window_days):
            start, _ = renewal_window(expiry, self._policy.renewal_window_days)
            raise RenewalWindowClosedError(expiry, start, today)
        return current, parent.category, RenewalContext(
            previous_certificate_number=parent.certificate_number,
            previous_expiry_date=expiry,
            requires_payment=charged,
            note=note,
        )
