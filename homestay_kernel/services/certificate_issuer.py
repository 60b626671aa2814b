"""
CertificateIssuer -- the one place an application becomes approved.

Responsibility:
    Mints a certificate number, stamps issue and expiry dates and
    ``approved_at``, records the ``certificate_issued`` narration row and,
    for service requests, supersedes the parent.  Called by WorkflowService
    (payment-free approval) and PaymentSettlementService (settlement).

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Certificate pairing: the status flip to ``approved`` and the
      certificate fields are flushed in the same transaction; if minting,
      the audit write or supersession fails, the caller's transaction rolls
      back and neither persists.
    - ``expiry = issued + certificate_validity_years`` (29 Feb clamps to
      28 Feb).  A cancellation certificate expires on its issue date.
    - Certificate numbers are assigned once and never reassigned.

Failure modes:
    - InvalidValidityTierError: application has no validity tier.
    - CertificateNumberExhaustedError: random strategy found no free number.
    - StaleApplicationStateError: service-request parent no longer approved.
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from homestay_kernel.domain.actors import Actor
from homestay_kernel.domain.certificates import expiry_for, issued_feedback
from homestay_kernel.domain.clock import Clock
from homestay_kernel.domain.policy import PortalPolicy
from homestay_kernel.domain.statuses import ApplicationKind, ApplicationStatus
from homestay_kernel.domain.workflows import CERTIFICATE_ISSUED
from homestay_kernel.exceptions import InvalidValidityTierError
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import Application
from homestay_kernel.services.audit_service import AuditService
from homestay_kernel.services.numbering_service import NumberingService
from homestay_kernel.services.supersession_service import SupersessionService

logger = get_logger("services.certificate_issuer")


@dataclass(frozen=True)
class IssuedCertificate:
    certificate_number: str
    issued_date: date
    expiry_date: date
    superseded_application_id: UUID | None = None


class CertificateIssuer:
    """
    Mints and stamps certificates.

    Contract:
        ``issue`` expects the application already locked and already set to
        ``approved`` (and flushed) by the caller.

    Non-goals:
        - Does NOT decide whether approval is allowed (WorkflowService /
          PaymentSettlementService do).
    """

    def __init__(
        self,
        session: Session,
        policy: PortalPolicy,
        clock: Clock,
        numbering: NumberingService | None = None,
        audit: AuditService | None = None,
    ):
        self._session = session
        self._policy = policy
        self._clock = clock
        self._numbering = numbering or NumberingService(session, policy)
        self._audit = audit or AuditService(session, clock)
        self._supersession = SupersessionService(session, clock, self._audit)

    def _expiry(self, application: Application, issued: date) -> date:
        if application.kind is ApplicationKind.CANCEL_CERTIFICATE:
            return issued
        years = application.certificate_validity_years
        if not years:
            raise InvalidValidityTierError(years, self._policy.validity_tiers)
        return expiry_for(issued, years)

    def issue(self, application: Application, actor: Actor) -> IssuedCertificate:
        """
        Issue the certificate for a freshly approved application.

        Postconditions:
            - ``certificate_number``, ``certificate_issued_date``,
              ``certificate_expiry_date`` and ``approved_at`` are set.
            - One ``certificate_issued`` action row (approved -> approved).
            - For service requests the parent is superseded.
        """
        issued = self._clock.today(self._policy.timezone)
        expiry = self._expiry(application, issued)
        number = self._numbering.certificate_numbering().next_certificate_number(issued.year)

        application.certificate_number = number
        application.certificate_issued_date = issued
        application.certificate_expiry_date = expiry
        application.approved_at = self._clock.now()
        self._session.flush()

        self._audit.record(
            application,
            actor,
            CERTIFICATE_ISSUED,
            ApplicationStatus.APPROVED.value,
            ApplicationStatus.APPROVED.value,
            issued_feedback(number, issued, expiry),
        )

        superseded_id = None
        if application.is_service_request:
            superseded_id = self._supersession.supersede(application, actor).id

        logger.info(
            "certificate_issued",
            extra={
                "application_id": str(application.id),
                "application_number": application.application_number,
                "certificate_number": number,
                "issued_date": issued,
                "expiry_date": expiry,
                "numbering_strategy": self._policy.certificate_numbering,
            },
        )
        return IssuedCertificate(number, issued, expiry, superseded_id)
