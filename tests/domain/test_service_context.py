"""
Tagged service-context payloads.

The stored JSON carries its variant discriminator; decoding must refuse a
payload whose variant does not match the application kind.
"""

from datetime import date

import pytest

from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.service_context import (
    CancellationContext,
    CategoryChangeContext,
    LegacyOnboardingContext,
    RenewalContext,
    RoomDeltaContext,
    encode_service_context,
    parse_service_context,
    requires_payment,
)
from homestay_kernel.domain.statuses import ApplicationKind
from homestay_kernel.exceptions import ServiceContextMismatchError


class TestServiceContextCodec:
    def test_room_delta_payload_decodes_to_same_context(self):
        context = RoomDeltaContext(
            kind=ApplicationKind.ADD_ROOMS,
            delta=RoomBreakdown(double=2),
            current_rooms=RoomBreakdown(single=1, double=2),
            target_rooms=RoomBreakdown(single=1, double=4),
            requires_payment=True,
            note="New wing",
        )
        payload = encode_service_context(ApplicationKind.ADD_ROOMS, context)
        assert payload["kind"] == "add_rooms"
        assert payload["target_rooms"] == {"single": 1, "double": 4, "family": 0}
        assert parse_service_context("add_rooms", payload) == context

    def test_renewal_dates_are_iso_strings(self):
        context = RenewalContext(
            previous_certificate_number="HP-HST-2025-00001",
            previous_expiry_date=date(2026, 6, 1),
            requires_payment=True,
        )
        payload = encode_service_context(ApplicationKind.RENEWAL, context)
        assert payload["previous_expiry_date"] == "2026-06-01"
        assert parse_service_context(ApplicationKind.RENEWAL, payload) == context

    def test_legacy_payload_marks_onboarding(self):
        context = LegacyOnboardingContext(requested_rooms_total=3, guardian_name="R. Verma")
        payload = encode_service_context(ApplicationKind.EXISTING_RC_ONBOARDING, context)
        assert payload["legacy_onboarding"] is True
        assert payload["requires_payment"] is False

    def test_absent_payload_is_none(self):
        assert parse_service_context(ApplicationKind.RENEWAL, None) is None
        assert parse_service_context(ApplicationKind.RENEWAL, {}) is None

    def test_mismatched_discriminator_is_rejected(self):
        payload = CancellationContext(reason="Closing").to_payload()
        with pytest.raises(ServiceContextMismatchError):
            parse_service_context(ApplicationKind.RENEWAL, payload)

    def test_encoding_wrong_variant_is_rejected(self):
        context = CategoryChangeContext(
            from_category="silver", to_category="gold", requires_payment=True,
        )
        with pytest.raises(ServiceContextMismatchError):
            encode_service_context(ApplicationKind.ADD_ROOMS, context)

    def test_room_delta_kind_must_match(self):
        context = RoomDeltaContext(
            kind=ApplicationKind.DELETE_ROOMS,
            delta=RoomBreakdown(single=1),
            current_rooms=RoomBreakdown(single=2),
            target_rooms=RoomBreakdown(single=1),
            requires_payment=False,
        )
        with pytest.raises(ServiceContextMismatchError):
            encode_service_context(ApplicationKind.ADD_ROOMS, context)


class TestRequiresPayment:
    charged = frozenset({ApplicationKind.NEW_REGISTRATION, ApplicationKind.ADD_ROOMS})

    def test_snapshot_flag_wins_over_policy(self):
        context = RoomDeltaContext(
            kind=ApplicationKind.ADD_ROOMS,
            delta=RoomBreakdown(single=1),
            current_rooms=RoomBreakdown(single=1),
            target_rooms=RoomBreakdown(single=2),
            requires_payment=False,
        )
        assert requires_payment(ApplicationKind.ADD_ROOMS, context, self.charged) is False

    def test_no_context_uses_policy(self):
        assert requires_payment(ApplicationKind.NEW_REGISTRATION, None, self.charged) is True
        assert requires_payment(ApplicationKind.CANCEL_CERTIFICATE, None, self.charged) is False
