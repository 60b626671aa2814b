"""
homestay_services.gateway -- payment gateway callback boundary.

Responsibility:
    Receives an already-decoded settlement notice from the treasury gateway
    adapter and turns it into a settlement (or a recorded failure) through
    the portal, acting as the fixed gateway system actor.

Architecture position:
    Services -- boundary.  Decrypting and checksumming the gateway's wire
    format happens in the external adapter before this point.

Invariants enforced:
    - The gateway never settles anything except through
      ``PaymentSettlementService`` (via the portal), so a callback gets the
      same atomic approve-and-issue unit as a manual confirmation.
    - A repeated success notice for a payment that is already settled is
      acknowledged without changing anything.

Failure modes:
    - PaymentNotFoundError for an unknown payment id.
    - StaleApplicationStateError when the application left
      ``payment_pending`` for another reason.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from homestay_kernel.domain.actors import Actor
from homestay_kernel.domain.dtos import PaymentView, SettlementResult
from homestay_kernel.domain.statuses import PaymentStatus
from homestay_kernel.exceptions import StaleApplicationStateError
from homestay_kernel.logging_config import get_logger
from homestay_services.portal import HomestayPortal

logger = get_logger("services.gateway")


@dataclass(frozen=True)
class SettlementNotice:
    """Decoded gateway callback."""

    payment_id: UUID
    success: bool
    gateway_reference: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class CallbackOutcome:
    notice: SettlementNotice
    settlement: SettlementResult | None = None
    payment: PaymentView | None = None
    duplicate: bool = False


class GatewayCallbackHandler:
    """
    Applies gateway notices.

    Contract:
        ``handle`` returns a ``CallbackOutcome``; kernel errors propagate.
    """

    def __init__(self, portal: HomestayPortal):
        self._portal = portal
        self._actor = Actor.gateway()

    def _already_settled(self, payment_id: UUID) -> PaymentView | None:
        payment = self._portal.get_payment(payment_id)
        if payment.payment_status == PaymentStatus.SUCCESS.value:
            return payment
        return None

    def handle(self, notice: SettlementNotice) -> CallbackOutcome:
        logger.info(
            "gateway_notice_received",
            extra={
                "payment_id": str(notice.payment_id),
                "success": notice.success,
                "gateway_reference": notice.gateway_reference,
            },
        )
        if not notice.success:
            payment = self._portal.mark_payment_failed(
                notice.payment_id,
                self._actor,
                reason=notice.failure_reason,
                gateway_reference=notice.gateway_reference,
            )
            return CallbackOutcome(notice=notice, payment=payment)

        try:
            settlement = self._portal.confirm_payment(
                notice.payment_id, self._actor, notice.gateway_reference,
            )
        except StaleApplicationStateError:
            settled = self._already_settled(notice.payment_id)
            if settled is None:
                raise
            logger.info(
                "gateway_notice_duplicate",
                extra={"payment_id": str(notice.payment_id)},
            )
            return CallbackOutcome(notice=notice, payment=settled, duplicate=True)
        return CallbackOutcome(notice=notice, settlement=settlement, payment=settlement.payment)
