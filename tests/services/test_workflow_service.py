"""
WorkflowService -- review lifecycle of a new registration.

Covers the full happy path, audit-row pairing for every status change,
guards (inspection, payment), corrections, rejections, stale preconditions
and the event-driven payment transition.
"""

import re
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from homestay_kernel.domain.statuses import ApplicationStatus as S
from homestay_kernel.domain.workflows import (
    APPROVE_WITHOUT_PAYMENT,
    CONFIRM_PAYMENT,
    FORWARD_TO_DTDO,
    INSPECTION_WAIVED,
    REJECT,
    REQUEST_CORRECTION,
    REQUEST_PAYMENT,
    RESUBMIT,
    SCHEDULE_INSPECTION,
    START_DTDO_REVIEW,
    START_SCRUTINY,
    SUBMIT,
    VERIFY_WITHOUT_INSPECTION,
)
from homestay_kernel.exceptions import (
    DistrictScopeError,
    IllegalTransitionError,
    IncompleteApplicationError,
    InvalidValidityTierError,
    MissingDocumentsError,
    NotApplicationOwnerError,
    RoleNotPermittedError,
    StaleApplicationStateError,
    ValidationError,
)
from homestay_kernel.models.application import Application
from homestay_kernel.models.application_action import ApplicationAction
from homestay_kernel.selectors import ActionSelector
from homestay_kernel.services import WorkflowService
from tests.conftest import make_draft, registration_uploads, upload, with_policy

CERTIFICATE_PATTERN = re.compile(r"^HP-HST-2025-\d{5}$")


class TestNewRegistrationEndToEnd:
    def test_draft_to_approved_with_payment(
        self, submitted_registration, drive_to_approved, session,
    ):
        application_id = submitted_registration(
            total_rooms=3, single_bed_rooms=2, double_bed_rooms=1, family_suites=0,
        )
        settlement = drive_to_approved(application_id)

        assert settlement.payment.payment_status == "success"
        assert settlement.payment.amount == Decimal("12000")
        assert CERTIFICATE_PATTERN.match(settlement.certificate_number)
        assert settlement.certificate_issued_date == date(2025, 6, 1)
        assert settlement.certificate_expiry_date == date(2026, 6, 1)

        application = session.get(Application, application_id)
        assert application.status == S.APPROVED.value
        assert application.certificate_number == settlement.certificate_number
        assert application.approved_at is not None
        assert application.total_rooms == 3

    def test_three_year_tier_multiplies_fee_and_validity(
        self, submitted_registration, drive_to_approved,
    ):
        application_id = submitted_registration(certificate_validity_years=3, category="diamond")
        settlement = drive_to_approved(application_id)
        assert settlement.payment.amount == Decimal("54000")
        assert settlement.certificate_expiry_date == date(2028, 6, 1)

    def test_every_status_change_has_one_matching_action(
        self, submitted_registration, drive_to_approved, session,
    ):
        application_id = submitted_registration()
        drive_to_approved(application_id)

        history = ActionSelector(session).history(application_id)
        changes = [h for h in history if h.previous_status != h.new_status]
        chain = [(h.previous_status, h.new_status) for h in changes]
        assert chain == [
            ("draft", "submitted"),
            ("submitted", "under_scrutiny"),
            ("under_scrutiny", "forwarded_to_dtdo"),
            ("forwarded_to_dtdo", "dtdo_review"),
            ("dtdo_review", "inspection_scheduled"),
            ("inspection_scheduled", "inspection_under_review"),
            ("inspection_under_review", "verified_for_payment"),
            ("verified_for_payment", "payment_pending"),
            ("payment_pending", "approved"),
        ]
        assert [h.sequence for h in history] == list(range(1, len(history) + 1))
        assert history[-1].action == "certificate_issued"
        assert history[-1].feedback.startswith("Certificate HP-HST-2025-")

    def test_submitted_at_is_stamped(self, submitted_registration, session, deterministic_clock):
        application_id = submitted_registration()
        assert session.get(Application, application_id).submitted_at == deterministic_clock.now()

    def test_transition_logs_context(self, submitted_registration, workflow_service,
                                     dealing_assistant, captured_logs):
        application_id = submitted_registration()
        workflow_service.transition(application_id, START_SCRUTINY, dealing_assistant)
        records = [r for r in captured_logs() if r["message"] == "application_transitioned"]
        assert records[-1]["application_id"] == str(application_id)
        assert records[-1]["to_status"] == "under_scrutiny"


class TestSubmissionChecks:
    def test_missing_documents(self, application_service, workflow_service, document_service, owner):
        view = application_service.create_draft(owner, make_draft())
        document_service.attach(view.id, owner, upload("ownership_proof"))
        with pytest.raises(MissingDocumentsError) as exc_info:
            workflow_service.transition(view.id, SUBMIT, owner)
        assert exc_info.value.missing == ["owner_identity_proof"]

    def test_missing_fields(self, application_service, workflow_service, owner):
        view = application_service.create_draft(owner, make_draft(category=None, owner_name=""))
        with pytest.raises(IncompleteApplicationError) as exc_info:
            workflow_service.transition(view.id, SUBMIT, owner)
        assert exc_info.value.missing_fields == ["category", "owner_name"]

    def test_validity_tier_required(
        self, application_service, workflow_service, document_service, owner,
    ):
        view = application_service.create_draft(owner, make_draft(certificate_validity_years=None))
        for item in registration_uploads():
            document_service.attach(view.id, owner, item)
        with pytest.raises(InvalidValidityTierError):
            workflow_service.transition(view.id, SUBMIT, owner)

    def test_failed_submission_leaves_draft(self, application_service, workflow_service, session, owner):
        view = application_service.create_draft(owner, make_draft())
        with pytest.raises(MissingDocumentsError):
            workflow_service.transition(view.id, SUBMIT, owner)
        assert session.get(Application, view.id).status == S.DRAFT.value
        assert session.execute(select(ApplicationAction)).scalars().all() == []


class TestGuards:
    def test_inspection_cannot_be_skipped_for_new_registration(
        self, submitted_registration, workflow_service, dealing_assistant, dtdo,
    ):
        application_id = submitted_registration()
        workflow_service.transition(application_id, START_SCRUTINY, dealing_assistant)
        workflow_service.transition(application_id, FORWARD_TO_DTDO, dealing_assistant)
        workflow_service.transition(application_id, START_DTDO_REVIEW, dtdo)
        with pytest.raises(IllegalTransitionError) as exc_info:
            workflow_service.transition(application_id, VERIFY_WITHOUT_INSPECTION, dtdo)
        assert exc_info.value.reason == INSPECTION_WAIVED.description

    def test_paid_kind_cannot_be_approved_without_payment(
        self, submitted_registration, drive_to_verified, workflow_service, dtdo,
    ):
        application_id = submitted_registration()
        drive_to_verified(application_id)
        with pytest.raises(IllegalTransitionError):
            workflow_service.transition(application_id, APPROVE_WITHOUT_PAYMENT, dtdo)

    def test_fee_free_policy_approves_directly(
        self, session, policy, deterministic_clock, numbering,
        submitted_registration, drive_to_verified, dtdo,
    ):
        application_id = submitted_registration()
        drive_to_verified(application_id)
        free = with_policy(policy, payment_required_kinds=frozenset())
        service = WorkflowService(session, free, deterministic_clock, numbering=numbering)

        result = service.transition(application_id, APPROVE_WITHOUT_PAYMENT, dtdo)

        assert result.to_status == S.APPROVED.value
        assert CERTIFICATE_PATTERN.match(result.application.certificate_number)

    def test_request_payment_creates_pending_payment(
        self, submitted_registration, drive_to_verified, workflow_service, dtdo,
    ):
        application_id = submitted_registration()
        drive_to_verified(application_id)
        result = workflow_service.transition(
            application_id, REQUEST_PAYMENT, dtdo, amount=Decimal("9999.50"),
        )
        assert result.payment.payment_status == "pending"
        assert result.payment.amount == Decimal("9999.50")
        assert result.application.status == S.PAYMENT_PENDING.value
        assert result.application.certificate_number is None

    def test_non_positive_amount(self, submitted_registration, drive_to_verified, workflow_service, dtdo):
        application_id = submitted_registration()
        drive_to_verified(application_id)
        with pytest.raises(ValidationError) as exc_info:
            workflow_service.transition(application_id, REQUEST_PAYMENT, dtdo, amount=Decimal("0"))
        assert exc_info.value.field == "amount"

    def test_confirm_payment_is_not_an_officer_action(
        self, submitted_registration, drive_to_verified, workflow_service, dtdo,
    ):
        application_id = submitted_registration()
        drive_to_verified(application_id)
        workflow_service.transition(application_id, REQUEST_PAYMENT, dtdo)
        with pytest.raises(IllegalTransitionError):
            workflow_service.transition(application_id, CONFIRM_PAYMENT, dtdo)


class TestCorrectionsAndRejection:
    def test_correction_round_trip(
        self, submitted_registration, workflow_service, session, owner, dealing_assistant,
    ):
        application_id = submitted_registration()
        workflow_service.transition(application_id, START_SCRUTINY, dealing_assistant)
        workflow_service.transition(
            application_id, REQUEST_CORRECTION, dealing_assistant,
            feedback="Ownership proof is illegible",
        )
        result = workflow_service.transition(application_id, RESUBMIT, owner)

        assert result.from_status == S.CORRECTION_REQUIRED.value
        assert result.to_status == S.SUBMITTED.value
        feedback = [h.feedback for h in ActionSelector(session).history(application_id)]
        assert "Ownership proof is illegible" in feedback

    def test_correction_not_allowed_from_inspection(
        self, submitted_registration, workflow_service, dealing_assistant, dtdo,
    ):
        application_id = submitted_registration()
        workflow_service.transition(application_id, START_SCRUTINY, dealing_assistant)
        workflow_service.transition(application_id, FORWARD_TO_DTDO, dealing_assistant)
        workflow_service.transition(application_id, START_DTDO_REVIEW, dtdo)
        workflow_service.transition(application_id, SCHEDULE_INSPECTION, dtdo)
        with pytest.raises(IllegalTransitionError):
            workflow_service.transition(application_id, REQUEST_CORRECTION, dtdo)

    def test_rejection_is_terminal(
        self, submitted_registration, workflow_service, owner, dealing_assistant,
    ):
        application_id = submitted_registration()
        workflow_service.transition(application_id, START_SCRUTINY, dealing_assistant)
        result = workflow_service.transition(
            application_id, REJECT, dealing_assistant, feedback="Not a residential property",
        )
        assert result.application.stage == "Rejected"
        with pytest.raises(IllegalTransitionError):
            workflow_service.transition(application_id, RESUBMIT, owner)


class TestPreconditionsAndAuthorization:
    def test_stale_expected_status(self, submitted_registration, workflow_service, dealing_assistant):
        application_id = submitted_registration()
        workflow_service.transition(application_id, START_SCRUTINY, dealing_assistant)
        with pytest.raises(StaleApplicationStateError) as exc_info:
            workflow_service.transition(
                application_id, START_SCRUTINY, dealing_assistant, expected_status=S.SUBMITTED,
            )
        assert exc_info.value.current_status == "under_scrutiny"
        assert exc_info.value.expected_status == "submitted"

    def test_repeated_action_without_expectation_is_illegal(
        self, submitted_registration, workflow_service, dealing_assistant,
    ):
        application_id = submitted_registration()
        workflow_service.transition(application_id, START_SCRUTINY, dealing_assistant)
        with pytest.raises(IllegalTransitionError):
            workflow_service.transition(application_id, START_SCRUTINY, dealing_assistant)

    def test_unknown_action(self, submitted_registration, workflow_service, dealing_assistant):
        application_id = submitted_registration()
        with pytest.raises(ValidationError) as exc_info:
            workflow_service.transition(application_id, "fast_track", dealing_assistant)
        assert exc_info.value.field == "action"

    def test_wrong_role(self, submitted_registration, workflow_service, dtdo):
        application_id = submitted_registration()
        with pytest.raises(RoleNotPermittedError):
            workflow_service.transition(application_id, START_SCRUTINY, dtdo)

    def test_other_district(self, submitted_registration, workflow_service, other_district_dtdo,
                            dealing_assistant):
        application_id = submitted_registration()
        workflow_service.transition(application_id, START_SCRUTINY, dealing_assistant)
        workflow_service.transition(application_id, FORWARD_TO_DTDO, dealing_assistant)
        with pytest.raises(DistrictScopeError):
            workflow_service.transition(application_id, START_DTDO_REVIEW, other_district_dtdo)

    def test_out_of_scope_actor_learns_nothing_about_status(
        self, submitted_registration, workflow_service, other_district_dtdo,
    ):
        application_id = submitted_registration()
        # Illegal from "submitted", but the district check comes first.
        with pytest.raises(DistrictScopeError):
            workflow_service.transition(application_id, START_DTDO_REVIEW, other_district_dtdo)

    def test_other_owner_cannot_submit(self, application_service, workflow_service, owner, other_owner):
        view = application_service.create_draft(owner, make_draft())
        with pytest.raises(NotApplicationOwnerError):
            workflow_service.transition(view.id, SUBMIT, other_owner)


class TestCertificatePairing:
    def test_status_approved_iff_certificate_number(
        self, submitted_registration, drive_to_approved, session,
    ):
        approved_id = submitted_registration()
        drive_to_approved(approved_id)
        submitted_registration()

        for application in session.execute(select(Application)).scalars():
            has_certificate = application.certificate_number is not None
            assert (application.status == S.APPROVED.value) == has_certificate
