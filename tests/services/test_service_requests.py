"""
Service requests against an approved application.

Creation rules (one active request per parent, parent must be approved,
kind-specific validation), the review path of each kind, and supersession
of the parent when the request is approved.
"""

from datetime import date
from decimal import Decimal

import pytest

from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.service_context import (
    CancellationContext,
    CategoryChangeContext,
    RenewalContext,
    RoomDeltaContext,
)
from homestay_kernel.domain.statuses import ApplicationKind, ApplicationStatus as S, DocumentType
from homestay_kernel.domain.workflows import (
    APPROVE_WITHOUT_PAYMENT,
    FORWARD_TO_DTDO,
    START_DTDO_REVIEW,
    START_SCRUTINY,
    SUBMIT,
    SUPERSEDED,
    VERIFY_WITHOUT_INSPECTION,
)
from homestay_kernel.exceptions import (
    ActiveServiceRequestExistsError,
    InvalidServiceRequestError,
    MissingDocumentsError,
    NotApplicationOwnerError,
    ParentNotApprovedError,
    RenewalWindowClosedError,
    RoleNotPermittedError,
    RoomDeltaError,
    RoomLimitExceededError,
)
from homestay_kernel.models.application import Application
from homestay_kernel.selectors import ActionSelector
from homestay_kernel.services import ServiceRequestService, WorkflowService
from tests.conftest import upload, with_policy


@pytest.fixture
def parent_id(approved_registration):
    """Approved gold registration with 1 single + 2 double rooms, valid till 2026-06-01."""
    return approved_registration()


@pytest.fixture
def submit_child(workflow_service, owner):
    def _submit(child_id):
        workflow_service.transition(child_id, SUBMIT, owner)
        return child_id

    return _submit


class TestCreateServiceRequest:
    def test_add_rooms_draft(self, service_request_service, parent_id, owner):
        child = service_request_service.create(
            parent_id, owner, ApplicationKind.ADD_ROOMS, room_delta=RoomBreakdown(double=2),
        )
        assert child.status == S.DRAFT.value
        assert child.parent_application_id == parent_id
        assert child.application_number == "HP-HS-2025-SML-000002"
        assert child.rooms == RoomBreakdown(single=1, double=4)
        assert child.certificate_validity_years == 1
        context = child.service_context
        assert isinstance(context, RoomDeltaContext)
        assert context.delta == RoomBreakdown(double=2)
        assert context.current_rooms == RoomBreakdown(single=1, double=2)
        assert context.requires_payment is True

    def test_add_rooms_past_maximum(self, session, policy, deterministic_clock, numbering,
                                    approved_registration, owner):
        parent = approved_registration(total_rooms=5, single_bed_rooms=1, double_bed_rooms=4)
        service = ServiceRequestService(
            session, with_policy(policy, max_rooms_allowed=20), deterministic_clock, numbering,
        )
        with pytest.raises(RoomLimitExceededError, match="exceeds maximum") as exc_info:
            service.create(parent, owner, "add_rooms", room_delta=RoomBreakdown(single=16))
        assert exc_info.value.attempted == 21

        child = service.create(parent, owner, "add_rooms", room_delta=RoomBreakdown(single=10))
        assert child.total_rooms == 15

    def test_delete_rooms_needs_one_remaining(self, service_request_service, parent_id, owner):
        with pytest.raises(RoomDeltaError):
            service_request_service.create(
                parent_id, owner, "delete_rooms", room_delta=RoomBreakdown(single=1, double=2),
            )

    def test_room_kinds_require_delta(self, service_request_service, parent_id, owner):
        with pytest.raises(InvalidServiceRequestError) as exc_info:
            service_request_service.create(parent_id, owner, "add_rooms")
        assert exc_info.value.field == "room_delta"

    def test_second_active_request_conflicts(self, service_request_service, parent_id, owner):
        first = service_request_service.create(
            parent_id, owner, "delete_rooms", room_delta=RoomBreakdown(single=1),
        )
        with pytest.raises(ActiveServiceRequestExistsError) as exc_info:
            service_request_service.create(
                parent_id, owner, "delete_rooms", room_delta=RoomBreakdown(double=1),
            )
        assert exc_info.value.existing_application_id == first.id
        assert exc_info.value.existing_application_number == first.application_number

    def test_discarded_draft_frees_the_parent(self, service_request_service, application_service,
                                               parent_id, owner):
        first = service_request_service.create(parent_id, owner, "cancel_certificate", reason="Closing")
        application_service.discard_draft(first.id, owner)
        second = service_request_service.create(parent_id, owner, "cancel_certificate", reason="Closing")
        assert second.id != first.id

    def test_parent_must_be_approved(self, service_request_service, submitted_registration, owner):
        pending = submitted_registration()
        with pytest.raises(ParentNotApprovedError):
            service_request_service.create(pending, owner, "cancel_certificate", reason="x")

    def test_superseded_parent_cannot_be_chained(
        self, service_request_service, submit_child, drive_to_approved, parent_id, owner,
    ):
        child = service_request_service.create(
            parent_id, owner, "add_rooms", room_delta=RoomBreakdown(single=1),
        )
        drive_to_approved(submit_child(child.id))

        with pytest.raises(ParentNotApprovedError) as exc_info:
            service_request_service.create(
                parent_id, owner, "add_rooms", room_delta=RoomBreakdown(single=1),
            )
        assert exc_info.value.parent_status == "superseded"

    def test_only_owner_may_request(self, service_request_service, parent_id, other_owner, admin):
        with pytest.raises(NotApplicationOwnerError):
            service_request_service.create(parent_id, other_owner, "cancel_certificate", reason="x")
        with pytest.raises(RoleNotPermittedError):
            service_request_service.create(parent_id, admin, "cancel_certificate", reason="x")

    def test_new_registration_is_not_a_service_request(self, service_request_service, parent_id, owner):
        with pytest.raises(InvalidServiceRequestError):
            service_request_service.create(parent_id, owner, "new_registration")

    def test_change_category_must_differ(self, service_request_service, parent_id, owner):
        with pytest.raises(InvalidServiceRequestError):
            service_request_service.create(parent_id, owner, "change_category", target_category="gold")

    def test_cancel_requires_reason(self, service_request_service, parent_id, owner):
        with pytest.raises(InvalidServiceRequestError) as exc_info:
            service_request_service.create(parent_id, owner, "cancel_certificate", reason="  ")
        assert exc_info.value.field == "reason"


class TestAddRoomsApproval:
    def test_approval_supersedes_parent_with_target_rooms(
        self, service_request_service, submit_child, drive_to_approved, session, parent_id, owner,
    ):
        child = service_request_service.create(
            parent_id, owner, "add_rooms", room_delta=RoomBreakdown(family=1, double=1),
        )
        settlement = drive_to_approved(submit_child(child.id))

        assert settlement.payment.amount == Decimal("1000")
        assert settlement.superseded_application_id == parent_id

        parent = session.get(Application, parent_id)
        approved = session.get(Application, child.id)
        assert parent.status == S.SUPERSEDED.value
        assert parent.rooms == approved.rooms == RoomBreakdown(single=1, double=3, family=1)
        assert approved.certificate_number != parent.certificate_number

        history = ActionSelector(session).history(parent_id)
        assert history[-1].action == SUPERSEDED
        assert history[-1].new_status == S.SUPERSEDED.value
        assert child.application_number in history[-1].feedback


class TestDeleteRooms:
    def test_inspection_required_unless_disabled(
        self, service_request_service, submit_child, drive_to_approved, session, parent_id, owner,
    ):
        child = service_request_service.create(
            parent_id, owner, "delete_rooms", room_delta=RoomBreakdown(double=1),
        )
        result = drive_to_approved(submit_child(child.id), inspection=True, pay=False)
        assert result.to_status == S.APPROVED.value
        assert session.get(Application, parent_id).total_rooms == 2

    def test_waived_inspection(
        self, session, policy, deterministic_clock, numbering, service_request_service,
        submit_child, parent_id, owner, dealing_assistant, dtdo,
    ):
        child = service_request_service.create(
            parent_id, owner, "delete_rooms", room_delta=RoomBreakdown(single=1),
        )
        submit_child(child.id)
        waived = with_policy(
            policy, inspection_disabled_kinds=frozenset({ApplicationKind.DELETE_ROOMS}),
        )
        workflow = WorkflowService(session, waived, deterministic_clock, numbering=numbering)
        for action, actor in (
            (START_SCRUTINY, dealing_assistant),
            (FORWARD_TO_DTDO, dealing_assistant),
            (START_DTDO_REVIEW, dtdo),
            (VERIFY_WITHOUT_INSPECTION, dtdo),
        ):
            workflow.transition(child.id, action, actor)
        result = workflow.transition(child.id, APPROVE_WITHOUT_PAYMENT, dtdo)

        assert result.application.rooms == RoomBreakdown(double=2)
        assert session.get(Application, parent_id).status == S.SUPERSEDED.value


class TestChangeCategory:
    def test_fee_follows_target_category(
        self, service_request_service, submit_child, drive_to_approved, session, parent_id, owner,
    ):
        child = service_request_service.create(
            parent_id, owner, "change_category", target_category="diamond",
        )
        assert isinstance(child.service_context, CategoryChangeContext)
        assert child.service_context.from_category == "gold"

        settlement = drive_to_approved(submit_child(child.id))
        assert settlement.payment.amount == Decimal("18000")
        assert settlement.application.category == "diamond"
        assert session.get(Application, parent_id).category == "gold"


class TestCancelCertificate:
    def test_cancellation_needs_request_letter(self, service_request_service, workflow_service,
                                               parent_id, owner):
        child = service_request_service.create(parent_id, owner, "cancel_certificate", reason="Closing")
        with pytest.raises(MissingDocumentsError):
            workflow_service.transition(child.id, SUBMIT, owner)

    def test_cancellation_approved_without_payment(
        self, service_request_service, document_service, submit_child, drive_to_approved,
        session, parent_id, owner,
    ):
        child = service_request_service.create(
            parent_id, owner, "cancel_certificate", reason="Property sold",
        )
        assert isinstance(child.service_context, CancellationContext)
        assert child.certificate_validity_years is None
        document_service.attach(child.id, owner, upload(DocumentType.CANCELLATION_REQUEST))

        result = drive_to_approved(submit_child(child.id), pay=False)

        cancelled = result.application
        assert cancelled.certificate_issued_date == cancelled.certificate_expiry_date
        assert session.get(Application, parent_id).status == S.SUPERSEDED.value


class TestRenewal:
    def test_window_closed_far_from_expiry(self, service_request_service, parent_id, owner):
        with pytest.raises(RenewalWindowClosedError) as exc_info:
            service_request_service.create(parent_id, owner, "renewal")
        assert exc_info.value.window_start == date(2026, 3, 3)

    def test_renewal_inside_window(
        self, service_request_service, submit_child, drive_to_approved, deterministic_clock,
        parent_id, owner,
    ):
        deterministic_clock.advance_days(300)  # 2026-03-28
        child = service_request_service.create(parent_id, owner, "renewal", validity_years=3)

        assert isinstance(child.service_context, RenewalContext)
        assert child.service_context.previous_expiry_date == date(2026, 6, 1)
        assert child.certificate_validity_years == 3

        settlement = drive_to_approved(submit_child(child.id))
        assert settlement.payment.amount == Decimal("36000")
        assert settlement.certificate_issued_date == date(2026, 3, 28)
        assert settlement.certificate_expiry_date == date(2029, 3, 28)

    def test_window_closed_after_expiry(self, service_request_service, deterministic_clock,
                                        parent_id, owner):
        deterministic_clock.advance_days(366)  # 2026-06-02
        with pytest.raises(RenewalWindowClosedError):
            service_request_service.create(parent_id, owner, "renewal")
