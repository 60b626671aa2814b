"""
PaymentSettlementService -- the sole path from ``payment_pending`` to ``approved``.

Responsibility:
    Confirms a payment (officer action or gateway callback) and, in the same
    unit of work, approves the owning application, issues its certificate
    and supersedes its parent when it is a service request.  Also records
    failed gateway attempts.

Architecture position:
    Kernel > Services.  ``homestay_services.gateway`` translates gateway
    callbacks into calls on this service.

Invariants enforced:
    - Payment ``success`` with ``completed_at``, application ``approved``
      and its certificate fields, parent supersession and both action rows
      are flushed inside one transaction.  Any failure rolls back all of it:
      no ``approved`` without a certificate number, no certificate number
      without ``approved``.
    - Only the district's DTDO or the gateway system actor may confirm.

Failure modes:
    - PaymentNotFoundError / ApplicationNotFoundError: nothing mutated.
    - StaleApplicationStateError: application is not ``payment_pending``
      (already settled, or never reached payment).
    - RoleNotPermittedError / DistrictScopeError.

Audit relevance:
    Writes ``payment_confirmed`` (previous -> approved) and
    ``certificate_issued`` (approved -> approved) with the certificate
    number and validity dates in the feedback.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from homestay_kernel.domain.actors import Actor, Role
from homestay_kernel.domain.authorization import require_district, require_role
from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.dtos import PaymentView, SettlementResult
from homestay_kernel.domain.policy import PortalPolicy
from homestay_kernel.domain.statuses import ApplicationStatus, PaymentStatus
from homestay_kernel.domain.workflows import PAYMENT_CONFIRMED
from homestay_kernel.exceptions import (
    PaymentAlreadySettledError,
    PaymentNotFoundError,
    StaleApplicationStateError,
)
from homestay_kernel.logging_config import LogContext, get_logger
from homestay_kernel.models.payment import Payment
from homestay_kernel.services.audit_service import AuditService
from homestay_kernel.services.base import BaseService
from homestay_kernel.services.certificate_issuer import CertificateIssuer
from homestay_kernel.services.numbering_service import NumberingService

logger = get_logger("services.payment")

SETTLEMENT_ROLES = frozenset({Role.DISTRICT_TOURISM_OFFICER, Role.SYSTEM})


def confirmation_feedback(actor: Actor, gateway_reference: str | None) -> str:
    if actor.role is Role.SYSTEM:
        ref = f" (reference {gateway_reference})" if gateway_reference else ""
        return f"Payment settled by gateway{ref}."
    return "Payment confirmed manually by officer."


class PaymentSettlementService(BaseService):
    """
    Settles payments.

    Contract:
        ``confirm()`` returns a frozen ``SettlementResult``.

    Non-goals:
        - Does NOT parse gateway payloads (boundary layer).
        - Does NOT create payments (WorkflowService on ``request_payment``).
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
        self._audit = AuditService(session, self._clock)
        self._issuer = CertificateIssuer(
            session, policy, self._clock,
            numbering=numbering or NumberingService(session, policy),
            audit=self._audit,
        )

    def _lock_payment(self, payment_id: UUID) -> Payment:
        payment = self.session.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def confirm(
        self,
        payment_id: UUID,
        actor: Actor,
        gateway_reference: str | None = None,
    ) -> SettlementResult:
        """
        Confirm ``payment_id`` and approve its application.

        Preconditions:
            - The payment exists; its application is ``payment_pending``.
              The payment itself may still be ``pending`` or ``failed``.
        Postconditions:
            - Payment is ``success`` with ``completed_at``.
            - Application is ``approved`` with certificate number and dates.
            - Parent (if any) is ``superseded``.
        """
        require_role(actor, SETTLEMENT_ROLES, "confirm_payment")
        payment = self._lock_payment(payment_id)
        application = self._lock_application(payment.application_id)
        require_district(actor, application.district, "confirm_payment")

        with LogContext.bind_application(application):
            previous = application.status
            if application.current_status is not ApplicationStatus.PAYMENT_PENDING:
                raise StaleApplicationStateError(
                    application.id,
                    previous,
                    ApplicationStatus.PAYMENT_PENDING.value,
                    ApplicationStatus.APPROVED.value,
                )

            now = self._clock.now()
            payment.payment_status = PaymentStatus.SUCCESS.value
            payment.completed_at = now
            payment.failure_reason = None
            if gateway_reference:
                payment.gateway_reference = gateway_reference
            payment.updated_at = now

            application.status = ApplicationStatus.APPROVED.value
            application.updated_at = now
            self._flush("Application", application.id)

            self._audit.record(
                application,
                actor,
                PAYMENT_CONFIRMED,
                previous,
                ApplicationStatus.APPROVED.value,
                confirmation_feedback(actor, gateway_reference),
            )
            issued = self._issuer.issue(application, actor)

            logger.info(
                "payment_confirmed",
                extra={
                    "payment_id": str(payment.id),
                    "amount": payment.amount,
                    "application_number": application.application_number,
                    "certificate_number": issued.certificate_number,
                    "confirmed_by": actor.role.value,
                },
            )
            return SettlementResult(
                application=application.to_dto(),
                payment=payment.to_dto(),
                certificate_number=issued.certificate_number,
                certificate_issued_date=issued.issued_date,
                certificate_expiry_date=issued.expiry_date,
                superseded_application_id=issued.superseded_application_id,
            )

    def mark_failed(
        self,
        payment_id: UUID,
        actor: Actor,
        reason: str | None = None,
        gateway_reference: str | None = None,
    ) -> PaymentView:
        """
        Record a failed gateway attempt.  The application stays in
        ``payment_pending`` so the owner can retry.
        """
        require_role(actor, SETTLEMENT_ROLES, "mark_payment_failed")
        payment = self._lock_payment(payment_id)
        if payment.payment_status == PaymentStatus.SUCCESS.value:
            raise PaymentAlreadySettledError(payment.id)
        payment.payment_status = PaymentStatus.FAILED.value
        payment.failure_reason = reason
        if gateway_reference:
            payment.gateway_reference = gateway_reference
        payment.updated_at = self._clock.now()
        self.session.flush()

        logger.warning(
            "payment_failed",
            extra={
                "payment_id": str(payment.id),
                "application_id": str(payment.application_id),
                "reason": reason,
            },
        )
        return payment.to_dto()
