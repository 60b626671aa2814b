"""
Module: homestay_kernel.selectors.action_selector
Responsibility: Read access to the append-only application action log:
    per-application history and the feed an external notifier polls.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - History is ordered by the per-application ``sequence``, so the
      timeline replays exactly in write order.

Audit relevance:
    ApplicationAction rows are the audit trail of every status change.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from homestay_kernel.domain.dtos import ActionRecord
from homestay_kernel.domain.workflows import (
    APPROVE_LEGACY,
    CERTIFICATE_ISSUED,
    REJECT,
    REJECT_LEGACY,
    REQUEST_CORRECTION,
    REQUEST_PAYMENT,
    RESUBMIT,
    SUBMIT,
    SUPERSEDED,
)
from homestay_kernel.models.application_action import ApplicationAction
from homestay_kernel.selectors.base import BaseSelector

# Actions the owner should be told about (SMS / e-mail delivery is external).
NOTIFIABLE_ACTIONS: frozenset[str] = frozenset({
    SUBMIT,
    RESUBMIT,
    REQUEST_CORRECTION,
    REJECT,
    REQUEST_PAYMENT,
    CERTIFICATE_ISSUED,
    APPROVE_LEGACY,
    REJECT_LEGACY,
    SUPERSEDED,
})


class ActionSelector(BaseSelector[ApplicationAction]):
    """Reads application actions."""

    def history(self, application_id: UUID) -> list[ActionRecord]:
        rows = self.session.execute(
            select(ApplicationAction)
            .where(ApplicationAction.application_id == application_id)
            .order_by(ApplicationAction.sequence)
        ).scalars()
        return [row.to_dto() for row in rows]

    def notable_events(
        self,
        since: datetime,
        limit: int | None = None,
    ) -> list[ActionRecord]:
        """Notifiable actions recorded at or after ``since``, oldest first."""
        stmt = (
            select(ApplicationAction)
            .where(ApplicationAction.action.in_(NOTIFIABLE_ACTIONS))
            .where(ApplicationAction.created_at >= since)
            .order_by(ApplicationAction.created_at, ApplicationAction.sequence)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]
