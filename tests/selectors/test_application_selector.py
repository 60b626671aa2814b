"""
Application read side: owner lists, district worklists, tracking.
"""

from uuid import uuid4

import pytest

from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.statuses import ApplicationStatus as S
from homestay_kernel.domain.workflows import (
    CERTIFICATE_ISSUED,
    PAYMENT_CONFIRMED,
    REQUEST_PAYMENT,
    SUBMIT,
)
from homestay_kernel.exceptions import ApplicationNotFoundError, PaymentNotFoundError
from homestay_kernel.selectors import ApplicationSelector
from tests.conftest import legacy_intake, make_draft


@pytest.fixture
def applications(session):
    return ApplicationSelector(session)


class TestOwnerList:
    def test_superseded_hidden_by_default(
        self, applications, approved_registration, service_request_service,
        workflow_service, drive_to_approved, owner,
    ):
        parent_id = approved_registration()
        child = service_request_service.create(
            parent_id, owner, "add_rooms", room_delta=RoomBreakdown(single=1),
        )
        workflow_service.transition(child.id, SUBMIT, owner)
        drive_to_approved(child.id)

        visible = [a.id for a in applications.list_for_owner(owner.user_id)]
        everything = [a.id for a in applications.list_for_owner(owner.user_id, include_superseded=True)]
        assert visible == [child.id]
        assert set(everything) == {parent_id, child.id}


class TestDistrictWorklist:
    def test_drafts_excluded(self, applications, application_service, submitted_registration, owner):
        application_service.create_draft(owner, make_draft(property_name="Unsent"))
        submitted = submitted_registration()

        assert [a.id for a in applications.list_for_district("Shimla")] == [submitted]
        assert applications.list_for_district("Kullu") == []

    def test_status_filter(self, applications, submitted_registration, drive_to_verified):
        waiting = submitted_registration()
        verified = submitted_registration(property_name="Cedar Nest")
        drive_to_verified(verified)

        ready = applications.list_for_district("Shimla", statuses=[S.VERIFIED_FOR_PAYMENT])
        assert [a.id for a in ready] == [verified]
        queued = applications.list_for_district("Shimla", statuses=["submitted"])
        assert [a.id for a in queued] == [waiting]

    def test_legacy_review_desk(self, applications, legacy_service, owner, other_owner):
        legacy_service.save_draft(owner, legacy_intake())
        submitted = legacy_service.submit(other_owner, legacy_intake(rc_number="HP-RC-2024-0001"))
        assert [a.id for a in applications.list_for_legacy_review()] == [submitted.application.id]


class TestTracking:
    def test_timeline_and_stage(self, applications, approved_registration, session):
        application_id = approved_registration()
        number = applications.get(application_id).application_number

        view = applications.track(number)
        assert view.status == "approved"
        assert view.stage == "Approved"
        assert view.certificate_number is not None
        actions = [entry.action for entry in view.timeline]
        assert actions[0] == SUBMIT
        assert actions[-3:] == [REQUEST_PAYMENT, PAYMENT_CONFIRMED, CERTIFICATE_ISSUED]
        assert [entry.sequence for entry in view.timeline] == list(range(1, len(actions) + 1))

    def test_stage_of_submitted(self, applications, submitted_registration):
        application_id = submitted_registration()
        number = applications.get(application_id).application_number
        assert applications.track(number).stage == "Scrutiny"

    def test_unknown_number(self, applications):
        with pytest.raises(ApplicationNotFoundError):
            applications.track("HP-HS-2025-SML-999999")


class TestPayments:
    def test_payments_listed(self, applications, approved_registration):
        application_id = approved_registration()
        payments = applications.payments(application_id)
        assert [p.payment_status for p in payments] == ["success"]
        assert applications.payment(payments[0].id) == payments[0]
        assert applications.pending_payment(application_id) is None

    def test_unknown_payment(self, applications):
        with pytest.raises(PaymentNotFoundError):
            applications.payment(uuid4())
