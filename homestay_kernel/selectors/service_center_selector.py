"""
Module: homestay_kernel.selectors.service_center_selector
Responsibility: The owner's service center: every approved application with
    the follow-on actions currently open on it.
Architecture position: Kernel > Selectors.  Loads snapshots and hands them
    to the pure ``derive_service_summary``.

Invariants enforced:
    - Summaries are recomputed on every read from the stored application
      and the clock; nothing derived is persisted.
    - The active request is the newest child not in approved / rejected /
      superseded (draft included).
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.eligibility import (
    ActiveServiceRequest,
    ApprovedApplicationSnapshot,
    ServiceSummary,
    derive_service_summary,
)
from homestay_kernel.domain.policy import PortalPolicy
from homestay_kernel.domain.statuses import INACTIVE_REQUEST_STATUSES, ApplicationStatus
from homestay_kernel.exceptions import ApplicationNotFoundError
from homestay_kernel.models.application import Application
from homestay_kernel.selectors.base import BaseSelector


def snapshot_of(application: Application) -> ApprovedApplicationSnapshot:
    return ApprovedApplicationSnapshot(
        id=application.id,
        application_number=application.application_number,
        property_name=application.property_name or "",
        category=application.category,
        rooms=application.rooms,
        certificate_number=application.certificate_number,
        certificate_expiry_date=application.certificate_expiry_date,
    )


def active_request_of(child: Application) -> ActiveServiceRequest:
    return ActiveServiceRequest(
        id=child.id,
        application_number=child.application_number,
        application_kind=child.application_kind,
        status=child.status,
        total_rooms=child.total_rooms,
        created_at=child.created_at,
    )


class ServiceCenterSelector(BaseSelector[Application]):
    """Derives service summaries for approved applications."""

    def __init__(self, session: Session, policy: PortalPolicy, clock: Clock | None = None):
        super().__init__(session)
        self._policy = policy
        self._clock = clock or SystemClock()

    def _active_children(self, parent_ids: list[UUID]) -> dict[UUID, Application]:
        if not parent_ids:
            return {}
        rows = self.session.execute(
            select(Application)
            .where(Application.parent_application_id.in_(parent_ids))
            .where(Application.status.not_in([s.value for s in INACTIVE_REQUEST_STATUSES]))
            .order_by(Application.created_at)
        ).scalars()
        # Newest wins; the partial unique index keeps this to one per parent.
        return {child.parent_application_id: child for child in rows}

    def _summarize(
        self,
        application: Application,
        child: Application | None,
    ) -> ServiceSummary:
        return derive_service_summary(
            snapshot_of(application),
            active_request_of(child) if child is not None else None,
            self._clock.today(self._policy.timezone),
            max_rooms=self._policy.max_rooms_allowed,
            min_rooms_after_delete=self._policy.min_rooms_after_delete,
            renewal_window_days=self._policy.renewal_window_days,
        )

    def summaries_for(self, user_id: UUID) -> list[ServiceSummary]:
        approved = list(self.session.execute(
            select(Application)
            .where(Application.user_id == user_id)
            .where(Application.status == ApplicationStatus.APPROVED.value)
            .order_by(Application.approved_at.desc(), Application.application_number)
        ).scalars())
        children = self._active_children([a.id for a in approved])
        return [self._summarize(a, children.get(a.id)) for a in approved]

    def summary_for(self, application_id: UUID) -> ServiceSummary:
        """Summary for one approved application."""
        application = self.session.get(Application, application_id)
        if application is None or application.current_status is not ApplicationStatus.APPROVED:
            raise ApplicationNotFoundError(application_id)
        children = self._active_children([application.id])
        return self._summarize(application, children.get(application.id))
