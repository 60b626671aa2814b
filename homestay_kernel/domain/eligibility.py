"""
Eligibility & Derivation Engine (``homestay_kernel.domain.eligibility``).

Responsibility
--------------
Given an approved application (as a snapshot) and today's date, compute the
owner's service-center summary: which follow-on actions are open right now
and what blocks the rest.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over frozen snapshots.  Callers
(``ServiceCenterSelector``) rebuild the summary on every read; nothing here
is ever persisted because renewal-window membership changes with time.

Invariants enforced
-------------------
* ``can_renew`` iff ``expiry - window_days <= today <= expiry`` (inclusive
  on both ends, day granularity); false when expiry is unknown.
* ``can_add_rooms`` iff ``total_rooms < max_rooms``.
* ``can_delete_rooms`` iff ``total_rooms > min_rooms_after_delete``.
* Any active service request (draft included) disables every action; only
  a draft request may be discarded.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from uuid import UUID

from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.statuses import ApplicationStatus


@dataclass(frozen=True)
class ApprovedApplicationSnapshot:
    """The fields of an approved application the engine reads."""

    id: UUID
    application_number: str
    property_name: str
    category: str | None
    rooms: RoomBreakdown
    certificate_number: str | None
    certificate_expiry_date: date | None


@dataclass(frozen=True)
class ActiveServiceRequest:
    id: UUID
    application_number: str
    application_kind: str
    status: str
    total_rooms: int
    created_at: datetime

    @property
    def is_draft(self) -> bool:
        return self.status == ApplicationStatus.DRAFT.value


@dataclass(frozen=True)
class ServiceSummary:
    """Read model for the owner's service center card."""

    id: UUID
    application_number: str
    property_name: str
    category: str | None
    total_rooms: int
    max_rooms_allowed: int
    rooms: RoomBreakdown
    certificate_number: str | None
    certificate_expiry_date: date | None
    renewal_window_start: date | None
    renewal_window_end: date | None
    can_renew: bool
    can_add_rooms: bool
    can_delete_rooms: bool
    can_change_category: bool
    can_cancel: bool
    active_service_request: ActiveServiceRequest | None
    can_discard_active_draft: bool


def renewal_window(expiry: date | None, window_days: int) -> tuple[date | None, date | None]:
    """Inclusive ``(start, end)`` of the renewal window, or ``(None, None)``."""
    if expiry is None:
        return None, None
    return expiry - timedelta(days=window_days), expiry


def can_renew(expiry: date | None, today: date, window_days: int) -> bool:
    start, end = renewal_window(expiry, window_days)
    if start is None:
        return False
    return start <= today <= end


def derive_service_summary(
    snapshot: ApprovedApplicationSnapshot,
    active_request: ActiveServiceRequest | None,
    today: date,
    *,
    max_rooms: int,
    min_rooms_after_delete: int,
    renewal_window_days: int,
) -> ServiceSummary:
    """Compute the service-center summary for one approved application.

    Preconditions: ``snapshot`` describes an application in status approved.
    Postconditions: no I/O, no mutation; same inputs give the same summary.
    """
    start, end = renewal_window(snapshot.certificate_expiry_date, renewal_window_days)
    total = snapshot.rooms.total
    open_for_requests = active_request is None

    return ServiceSummary(
        id=snapshot.id,
        application_number=snapshot.application_number,
        property_name=snapshot.property_name,
        category=snapshot.category,
        total_rooms=total,
        max_rooms_allowed=max_rooms,
        rooms=snapshot.rooms,
        certificate_number=snapshot.certificate_number,
        certificate_expiry_date=snapshot.certificate_expiry_date,
        renewal_window_start=start,
        renewal_window_end=end,
        can_renew=open_for_requests
        and can_renew(snapshot.certificate_expiry_date, today, renewal_window_days),
        can_add_rooms=open_for_requests and total < max_rooms,
        can_delete_rooms=open_for_requests and total > min_rooms_after_delete,
        can_change_category=open_for_requests,
        can_cancel=open_for_requests,
        active_service_request=active_request,
        can_discard_active_draft=active_request is not None and active_request.is_draft,
    )
