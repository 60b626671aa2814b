"""
Module: homestay_kernel.selectors.application_selector
Responsibility: Read-only access to applications for the owner dashboard,
    district worklists and the public tracking page, plus their documents
    and payments.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Superseded applications are hidden from the owner dashboard unless
      asked for; their history stays reachable through tracking.
    - The stage label is derived from status on every read.

Failure modes:
    - ApplicationNotFoundError from ``get``, ``get_by_number`` and ``track``.
    - PaymentNotFoundError from ``payment``.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from homestay_kernel.domain.dtos import (
    ApplicationView,
    DocumentView,
    PaymentView,
    TrackingView,
)
from homestay_kernel.domain.statuses import ApplicationStatus, PaymentStatus, stage_for
from homestay_kernel.exceptions import ApplicationNotFoundError, PaymentNotFoundError
from homestay_kernel.models.application import Application
from homestay_kernel.models.document import Document
from homestay_kernel.models.payment import Payment
from homestay_kernel.selectors.action_selector import ActionSelector
from homestay_kernel.selectors.base import BaseSelector


class ApplicationSelector(BaseSelector[Application]):
    """
    Reads applications.

    Contract:
        Every method returns DTOs built while the session is open.
    """

    def _by_id(self, application_id: UUID) -> Application:
        application = self.session.get(Application, application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)
        return application

    def _by_number(self, application_number: str) -> Application:
        application = self.session.execute(
            select(Application).where(Application.application_number == application_number)
        ).scalar_one_or_none()
        if application is None:
            raise ApplicationNotFoundError(application_number)
        return application

    def get(self, application_id: UUID) -> ApplicationView:
        return self._by_id(application_id).to_dto()

    def get_by_number(self, application_number: str) -> ApplicationView:
        return self._by_number(application_number).to_dto()

    def list_for_owner(
        self,
        user_id: UUID,
        include_superseded: bool = False,
    ) -> list[ApplicationView]:
        """The owner's applications, newest first."""
        stmt = select(Application).where(Application.user_id == user_id)
        if not include_superseded:
            stmt = stmt.where(Application.status != ApplicationStatus.SUPERSEDED.value)
        stmt = stmt.order_by(Application.created_at.desc(), Application.application_number)
        return [a.to_dto() for a in self.session.execute(stmt).scalars()]

    def list_for_district(
        self,
        district: str,
        statuses: Iterable[ApplicationStatus | str] | None = None,
    ) -> list[ApplicationView]:
        """District worklist, oldest submission first."""
        stmt = select(Application).where(Application.district == district)
        if statuses is not None:
            stmt = stmt.where(
                Application.status.in_([ApplicationStatus(s).value for s in statuses])
            )
        else:
            stmt = stmt.where(Application.status != ApplicationStatus.DRAFT.value)
        stmt = stmt.order_by(Application.submitted_at, Application.application_number)
        return [a.to_dto() for a in self.session.execute(stmt).scalars()]

    def list_for_legacy_review(self) -> list[ApplicationView]:
        """Admin-RC desk: onboarding requests awaiting verification."""
        stmt = (
            select(Application)
            .where(Application.status == ApplicationStatus.LEGACY_RC_REVIEW.value)
            .order_by(Application.submitted_at, Application.application_number)
        )
        return [a.to_dto() for a in self.session.execute(stmt).scalars()]

    def track(self, application_number: str) -> TrackingView:
        application = self._by_number(application_number)
        timeline = ActionSelector(self.session).history(application.id)
        return TrackingView(
            application_number=application.application_number,
            application_kind=application.application_kind,
            status=application.status,
            stage=stage_for(application.status),
            property_name=application.property_name,
            district=application.district,
            submitted_at=application.submitted_at,
            certificate_number=application.certificate_number,
            timeline=tuple(timeline),
        )

    def documents(self, application_id: UUID) -> list[DocumentView]:
        rows = self.session.execute(
            select(Document)
            .where(Document.application_id == application_id)
            .order_by(Document.uploaded_at, Document.file_name)
        ).scalars()
        return [d.to_dto() for d in rows]

    def payments(self, application_id: UUID) -> list[PaymentView]:
        rows = self.session.execute(
            select(Payment)
            .where(Payment.application_id == application_id)
            .order_by(Payment.created_at)
        ).scalars()
        return [p.to_dto() for p in rows]

    def payment(self, payment_id: UUID) -> PaymentView:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment.to_dto()

    def pending_payment(self, application_id: UUID) -> PaymentView | None:
        """Most recent unsettled payment, if the application is awaiting one."""
        row = self.session.execute(
            select(Payment)
            .where(Payment.application_id == application_id)
            .where(Payment.payment_status != PaymentStatus.SUCCESS.value)
            .order_by(Payment.created_at.desc())
        ).scalars().first()
        return row.to_dto() if row is not None else None
