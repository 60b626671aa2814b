"""
AuditService -- writes ApplicationAction rows.

Responsibility:
    Appends one audit row per transition (and per narration event) inside
    the caller's transaction.  A transition whose audit row cannot be
    written fails as a whole, because the flush error propagates and the
    caller's transaction rolls back.

Architecture position:
    Kernel > Services.  Called by every service that changes status.

Invariants enforced:
    - Per-application ``sequence`` is assigned while the application row is
      locked by the caller, so it is gap-free and ordered.
    - Rows are never updated or deleted (ORM immutability listeners).
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from homestay_kernel.domain.actors import Actor
from homestay_kernel.domain.clock import Clock
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import Application
from homestay_kernel.models.application_action import ApplicationAction
from homestay_kernel.services.base import BaseService

logger = get_logger("services.audit")


class AuditService(BaseService):
    """Append-only writer for the application action log."""

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock

    def record(
        self,
        application: Application,
        actor: Actor,
        action: str,
        previous_status: str | None,
        new_status: str,
        feedback: str | None = None,
    ) -> ApplicationAction:
        """
        Append an action row for ``application``.

        Preconditions:
            - ``application`` is locked by the caller's transaction (or was
              created in it).
        Postconditions:
            - The row is flushed; its ``sequence`` is one more than the
              application's previous highest.
        """
        last = self.session.execute(
            select(func.max(ApplicationAction.sequence))
            .where(ApplicationAction.application_id == application.id)
        ).scalar()
        row = ApplicationAction(
            application_id=application.id,
            sequence=(last or 0) + 1,
            actor_id=actor.user_id,
            actor_role=actor.role.value,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            feedback=feedback,
            created_at=self._clock.now(),
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "application_action_recorded",
            extra={
                "application_id": str(application.id),
                "application_number": application.application_number,
                "action": action,
                "previous_status": previous_status,
                "new_status": new_status,
                "sequence": row.sequence,
            },
        )
        return row
