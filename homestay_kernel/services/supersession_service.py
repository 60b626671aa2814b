"""
SupersessionService -- retire a parent when its service request completes.

Responsibility:
    When a service request reaches ``approved``, its parent application is
    marked ``superseded`` so that only the newest approval is
    authoritative.  For room-delta requests the parent's room columns are
    first overwritten with the request's target breakdown.

Architecture position:
    Kernel > Services.  Called only by CertificateIssuer, inside the same
    transaction that approves the child.

Invariants enforced:
    - The parent must still be ``approved``; anything else raises a
      Conflict and the whole approval rolls back.
    - Exactly one ``superseded`` action row is written on the parent.
    - The parent keeps its certificate number (certificate history).
"""

from sqlalchemy.orm import Session

from homestay_kernel.domain.actors import Actor
from homestay_kernel.domain.clock import Clock
from homestay_kernel.domain.statuses import ROOM_DELTA_KINDS, ApplicationStatus
from homestay_kernel.domain.workflows import SUPERSEDED
from homestay_kernel.exceptions import StaleApplicationStateError
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import Application
from homestay_kernel.services.audit_service import AuditService
from homestay_kernel.services.base import BaseService

logger = get_logger("services.supersession")


def supersession_feedback(application_number: str) -> str:
    return f"Superseded by application {application_number}"


class SupersessionService(BaseService):
    """Applies the ``approved -> superseded`` side effect to a parent."""

    def __init__(self, session: Session, clock: Clock, audit: AuditService | None = None):
        super().__init__(session)
        self._clock = clock
        self._audit = audit or AuditService(session, clock)

    def supersede(self, child: Application, actor: Actor) -> Application:
        """
        Retire ``child``'s parent.

        Preconditions:
            - ``child`` has just been approved in this transaction.
        Postconditions:
            - Parent status is ``superseded``; for add/delete requests its
              rooms equal ``child.rooms``.

        Raises:
            StaleApplicationStateError: parent is no longer ``approved``.
        """
        parent = self._lock_application(child.parent_application_id)
        if parent.current_status is not ApplicationStatus.APPROVED:
            raise StaleApplicationStateError(
                parent.id,
                parent.status,
                ApplicationStatus.APPROVED.value,
                ApplicationStatus.SUPERSEDED.value,
            )

        if child.kind in ROOM_DELTA_KINDS:
            parent.set_rooms(child.rooms)
        parent.status = ApplicationStatus.SUPERSEDED.value
        parent.updated_at = self._clock.now()
        self._flush("Application", parent.id)

        self._audit.record(
            parent,
            actor,
            SUPERSEDED,
            ApplicationStatus.APPROVED.value,
            ApplicationStatus.SUPERSEDED.value,
            supersession_feedback(child.application_number),
        )
        logger.info(
            "application_superseded",
            extra={
                "parent_application_id": str(parent.id),
                "parent_application_number": parent.application_number,
                "superseded_by": child.application_number,
                "application_kind": child.application_kind,
                "total_rooms": parent.total_rooms,
            },
        )
        return parent
