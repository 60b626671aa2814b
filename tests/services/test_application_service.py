"""
Draft management for new registrations.

Covers creation (number allocation, capacity checks), owner-only editing
while the application is editable, and hard deletion of drafts.
"""

import pytest
from sqlalchemy import select

from homestay_kernel.domain.statuses import ApplicationStatus
from homestay_kernel.domain.workflows import REQUEST_CORRECTION, START_SCRUTINY
from homestay_kernel.exceptions import (
    DraftRequiredError,
    InvalidRoomBreakdownError,
    InvalidValidityTierError,
    NotApplicationOwnerError,
    RoleNotPermittedError,
    RoomLimitExceededError,
    ValidationError,
)
from homestay_kernel.models.application import Application
from homestay_kernel.models.document import Document
from tests.conftest import make_draft, registration_uploads


class TestCreateDraft:
    def test_creates_numbered_draft(self, application_service, owner):
        view = application_service.create_draft(owner, make_draft())

        assert view.status == ApplicationStatus.DRAFT.value
        assert view.stage == "Draft"
        assert view.application_kind == "new_registration"
        assert view.application_number == "HP-HS-2025-SML-000001"
        assert view.user_id == owner.user_id
        assert view.total_rooms == 3
        assert view.certificate_number is None

    def test_serial_increments_per_district(self, application_service, owner):
        first = application_service.create_draft(owner, make_draft())
        second = application_service.create_draft(owner, make_draft())
        kullu = application_service.create_draft(owner, make_draft(district="Kullu"))

        assert first.application_number.endswith("SML-000001")
        assert second.application_number.endswith("SML-000002")
        assert kullu.application_number == "HP-HS-2025-KLU-000001"

    def test_room_sum_mismatch(self, application_service, owner):
        with pytest.raises(InvalidRoomBreakdownError):
            application_service.create_draft(owner, make_draft(total_rooms=5))

    def test_room_limit(self, application_service, owner):
        with pytest.raises(RoomLimitExceededError):
            application_service.create_draft(
                owner, make_draft(total_rooms=7, single_bed_rooms=7, double_bed_rooms=0),
            )

    def test_unknown_category(self, application_service, owner):
        with pytest.raises(ValidationError) as exc_info:
            application_service.create_draft(owner, make_draft(category="platinum"))
        assert exc_info.value.field == "category"

    def test_validity_outside_tiers(self, application_service, owner):
        with pytest.raises(InvalidValidityTierError):
            application_service.create_draft(owner, make_draft(certificate_validity_years=2))

    def test_officer_cannot_create(self, application_service, dealing_assistant):
        with pytest.raises(RoleNotPermittedError):
            application_service.create_draft(dealing_assistant, make_draft())

    def test_failed_create_writes_nothing(self, application_service, session, owner):
        with pytest.raises(RoomLimitExceededError):
            application_service.create_draft(
                owner, make_draft(total_rooms=9, single_bed_rooms=9, double_bed_rooms=0),
            )
        assert session.execute(select(Application)).scalars().all() == []

    def test_logs_creation(self, application_service, owner, captured_logs):
        view = application_service.create_draft(owner, make_draft())
        records = [r for r in captured_logs() if r["message"] == "application_draft_created"]
        assert records[0]["application_number"] == view.application_number


class TestUpdateDetails:
    def test_owner_updates_draft(self, application_service, owner):
        view = application_service.create_draft(owner, make_draft())
        updated = application_service.update_details(
            view.id, owner,
            make_draft(property_name="Cedar Cottage", total_rooms=2, double_bed_rooms=1),
        )
        assert updated.property_name == "Cedar Cottage"
        assert updated.total_rooms == 2
        assert updated.application_number == view.application_number

    def test_other_owner_rejected(self, application_service, owner, other_owner):
        view = application_service.create_draft(owner, make_draft())
        with pytest.raises(NotApplicationOwnerError):
            application_service.update_details(view.id, other_owner, make_draft())

    def test_submitted_application_is_locked(self, application_service, submitted_registration, owner):
        application_id = submitted_registration()
        with pytest.raises(DraftRequiredError):
            application_service.update_details(application_id, owner, make_draft())

    def test_correction_required_is_editable(
        self, application_service, workflow_service, submitted_registration, owner, dealing_assistant,
    ):
        application_id = submitted_registration()
        workflow_service.transition(application_id, START_SCRUTINY, dealing_assistant)
        workflow_service.transition(
            application_id, REQUEST_CORRECTION, dealing_assistant, feedback="Fix address",
        )
        updated = application_service.update_details(
            application_id, owner, make_draft(address="Ward 5, Mashobra"),
        )
        assert updated.status == ApplicationStatus.CORRECTION_REQUIRED.value


class TestDiscardDraft:
    def test_discard_removes_application_and_documents(
        self, application_service, document_service, session, owner,
    ):
        view = application_service.create_draft(owner, make_draft())
        for item in registration_uploads():
            document_service.attach(view.id, owner, item)

        application_service.discard_draft(view.id, owner)

        assert session.get(Application, view.id) is None
        assert session.execute(
            select(Document).where(Document.application_id == view.id)
        ).scalars().all() == []

    def test_submitted_cannot_be_discarded(self, application_service, submitted_registration, owner):
        application_id = submitted_registration()
        with pytest.raises(DraftRequiredError):
            application_service.discard_draft(application_id, owner)

    def test_other_owner_cannot_discard(self, application_service, owner, other_owner):
        view = application_service.create_draft(owner, make_draft())
        with pytest.raises(NotApplicationOwnerError):
            application_service.discard_draft(view.id, other_owner)
