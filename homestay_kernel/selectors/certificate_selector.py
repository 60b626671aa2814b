"""
Module: homestay_kernel.selectors.certificate_selector
Responsibility: Public certificate verification.  Given a certificate
    number, say whether it is valid today and whom it was issued to.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - A certificate's state is derived from its application on every read:
        approved cancellation request     -> cancelled
        superseded by a cancellation      -> cancelled
        superseded by any other request   -> superseded (with the
                                             replacement number)
        approved and past expiry          -> expired
        approved otherwise                -> valid
    - Attested legacy RC numbers verify only once the onboarding is
      approved (the number is then the application's certificate number).

Failure modes:
    - CertificateNotFoundError for unknown numbers and for numbers not
      (yet) attached to an approved or superseded application.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from homestay_kernel.domain.certificates import CertificateState
from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.dtos import CertificateVerification
from homestay_kernel.domain.statuses import ApplicationKind, ApplicationStatus
from homestay_kernel.exceptions import CertificateNotFoundError
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import Application
from homestay_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.certificate")


class CertificateSelector(BaseSelector[Application]):
    """Verifies certificate numbers."""

    def __init__(self, session: Session, clock: Clock | None = None, timezone: str | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._timezone = timezone

    def _successor(self, application: Application) -> Application | None:
        return self.session.execute(
            select(Application)
            .where(Application.parent_application_id == application.id)
            .where(Application.status.in_([
                ApplicationStatus.APPROVED.value,
                ApplicationStatus.SUPERSEDED.value,
            ]))
            .order_by(Application.approved_at.desc())
        ).scalars().first()

    def verify(self, certificate_number: str, today: date | None = None) -> CertificateVerification:
        number = (certificate_number or "").strip()
        application = self.session.execute(
            select(Application).where(Application.certificate_number == number)
        ).scalar_one_or_none()
        if application is None or application.current_status not in (
            ApplicationStatus.APPROVED,
            ApplicationStatus.SUPERSEDED,
        ):
            logger.info("certificate_verification_miss", extra={"certificate_number": number})
            raise CertificateNotFoundError(number)

        today = today or self._clock.today(self._timezone)
        superseded_by = None
        if application.current_status is ApplicationStatus.SUPERSEDED:
            successor = self._successor(application)
            if successor is not None and successor.kind is ApplicationKind.CANCEL_CERTIFICATE:
                state = CertificateState.CANCELLED
            else:
                state = CertificateState.SUPERSEDED
                superseded_by = successor.certificate_number if successor is not None else None
        elif application.kind is ApplicationKind.CANCEL_CERTIFICATE:
            state = CertificateState.CANCELLED
        elif application.certificate_expiry_date is not None and application.certificate_expiry_date < today:
            state = CertificateState.EXPIRED
        else:
            state = CertificateState.VALID

        logger.info(
            "certificate_verified",
            extra={"certificate_number": number, "state": state.value},
        )
        return CertificateVerification(
            certificate_number=number,
            state=state,
            application_number=application.application_number,
            property_name=application.property_name,
            owner_name=application.owner_name,
            district=application.district,
            category=application.category,
            total_rooms=application.total_rooms,
            issued_date=application.certificate_issued_date,
            expiry_date=application.certificate_expiry_date,
            superseded_by=superseded_by,
        )
