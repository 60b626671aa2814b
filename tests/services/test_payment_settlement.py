"""
Payment settlement.

Confirmation moves the payment to success and the application to approved
with its certificate in one unit; failures leave the application waiting
in payment_pending so the owner can retry.
"""

from uuid import uuid4

import pytest

from homestay_kernel.domain.actors import Actor
from homestay_kernel.domain.statuses import ApplicationStatus as S
from homestay_kernel.domain.workflows import PAYMENT_CONFIRMED, REQUEST_PAYMENT
from homestay_kernel.exceptions import (
    DistrictScopeError,
    PaymentAlreadySettledError,
    PaymentNotFoundError,
    RoleNotPermittedError,
    StaleApplicationStateError,
)
from homestay_kernel.models.application import Application
from homestay_kernel.selectors import ActionSelector, ApplicationSelector


@pytest.fixture
def pending_payment(submitted_registration, drive_to_verified, workflow_service, dtdo):
    """(application_id, payment_id) for an application awaiting payment."""
    application_id = submitted_registration()
    drive_to_verified(application_id)
    result = workflow_service.transition(application_id, REQUEST_PAYMENT, dtdo)
    return application_id, result.payment.id


class TestConfirm:
    def test_confirm_settles_and_issues(self, payment_service, pending_payment, session, dtdo,
                                        deterministic_clock):
        application_id, payment_id = pending_payment
        result = payment_service.confirm(payment_id, dtdo, gateway_reference="TXN-001")

        assert result.payment.payment_status == "success"
        assert result.payment.completed_at == deterministic_clock.now()
        assert result.payment.gateway_reference == "TXN-001"
        assert result.application.status == S.APPROVED.value
        assert result.application.certificate_number == result.certificate_number
        assert session.get(Application, application_id).certificate_expiry_date == (
            result.certificate_expiry_date
        )

    def test_officer_confirmation_feedback(self, payment_service, pending_payment, session, dtdo):
        application_id, payment_id = pending_payment
        payment_service.confirm(payment_id, dtdo)
        history = ActionSelector(session).history(application_id)
        confirmed = [h for h in history if h.action == PAYMENT_CONFIRMED]
        assert len(confirmed) == 1
        assert confirmed[0].feedback == "Payment confirmed manually by officer."
        assert (confirmed[0].previous_status, confirmed[0].new_status) == ("payment_pending", "approved")

    def test_gateway_confirmation(self, payment_service, pending_payment, session):
        application_id, payment_id = pending_payment
        payment_service.confirm(payment_id, Actor.gateway(), gateway_reference="TXN-9")
        history = ActionSelector(session).history(application_id)
        confirmed = next(h for h in history if h.action == PAYMENT_CONFIRMED)
        assert confirmed.feedback == "Payment settled by gateway (reference TXN-9)."
        assert confirmed.actor_role == "system"

    def test_second_confirmation_is_stale(self, payment_service, pending_payment, dtdo):
        _, payment_id = pending_payment
        payment_service.confirm(payment_id, dtdo)
        with pytest.raises(StaleApplicationStateError) as exc_info:
            payment_service.confirm(payment_id, dtdo)
        assert exc_info.value.current_status == "approved"

    def test_unknown_payment(self, payment_service, dtdo):
        with pytest.raises(PaymentNotFoundError):
            payment_service.confirm(uuid4(), dtdo)

    def test_owner_cannot_confirm(self, payment_service, pending_payment, owner):
        _, payment_id = pending_payment
        with pytest.raises(RoleNotPermittedError):
            payment_service.confirm(payment_id, owner)

    def test_other_district_officer_cannot_confirm(self, payment_service, pending_payment,
                                                    other_district_dtdo, session):
        application_id, payment_id = pending_payment
        with pytest.raises(DistrictScopeError):
            payment_service.confirm(payment_id, other_district_dtdo)
        assert session.get(Application, application_id).status == S.PAYMENT_PENDING.value


class TestMarkFailed:
    def test_failure_keeps_application_waiting(self, payment_service, pending_payment, session, dtdo):
        application_id, payment_id = pending_payment
        view = payment_service.mark_failed(payment_id, dtdo, reason="Card declined")

        assert view.payment_status == "failed"
        assert session.get(Application, application_id).status == S.PAYMENT_PENDING.value
        assert ApplicationSelector(session).pending_payment(application_id).id == payment_id

    def test_failed_payment_can_still_be_confirmed(self, payment_service, pending_payment, dtdo):
        _, payment_id = pending_payment
        payment_service.mark_failed(payment_id, dtdo, reason="Timeout")
        result = payment_service.confirm(payment_id, dtdo)
        assert result.payment.payment_status == "success"
        assert result.application.status == S.APPROVED.value

    def test_settled_payment_cannot_fail(self, payment_service, pending_payment, dtdo):
        _, payment_id = pending_payment
        payment_service.confirm(payment_id, dtdo)
        with pytest.raises(PaymentAlreadySettledError):
            payment_service.mark_failed(payment_id, dtdo, reason="late callback")

    def test_failure_is_logged(self, payment_service, pending_payment, dtdo, captured_logs):
        _, payment_id = pending_payment
        payment_service.mark_failed(payment_id, dtdo, reason="Card declined")
        records = [r for r in captured_logs() if r["message"] == "payment_failed"]
        assert records[0]["level"] == "WARNING"
        assert records[0]["reason"] == "Card declined"
