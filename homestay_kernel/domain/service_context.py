"""
Service context: the typed snapshot attached to a service request.

Responsibility
--------------
A service request records, at creation time, what the owner asked for and
the state it was asked against (room delta and the parent's rooms, the
category change, the certificate being renewed, ...).  Each application kind
has its own variant; the JSON column stores the variant with a ``kind``
discriminator equal to the application kind.

The workflow service reads exactly one field from it: ``requires_payment``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects and (de)serialisation.

Invariants enforced
-------------------
* A payload's discriminator always equals the owning application's kind
  (``ServiceContextMismatchError`` otherwise).
* Variants are frozen; changing a request means creating a new context.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, ClassVar

from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.statuses import ApplicationKind
from homestay_kernel.exceptions import ServiceContextMismatchError


@dataclass(frozen=True)
class RoomDeltaContext:
    """Add or delete rooms on an approved property."""

    KINDS: ClassVar[frozenset[ApplicationKind]] = frozenset({
        ApplicationKind.ADD_ROOMS,
        ApplicationKind.DELETE_ROOMS,
    })

    kind: ApplicationKind
    delta: RoomBreakdown
    current_rooms: RoomBreakdown
    target_rooms: RoomBreakdown
    requires_payment: bool
    note: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "delta": self.delta.as_dict(),
            "current_rooms": self.current_rooms.as_dict(),
            "target_rooms": self.target_rooms.as_dict(),
            "requires_payment": self.requires_payment,
            "note": self.note,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> RoomDeltaContext:
        return cls(
            kind=ApplicationKind(data["kind"]),
            delta=RoomBreakdown.from_dict(data.get("delta")),
            current_rooms=RoomBreakdown.from_dict(data.get("current_rooms")),
            target_rooms=RoomBreakdown.from_dict(data.get("target_rooms")),
            requires_payment=bool(data.get("requires_payment", True)),
            note=data.get("note"),
        )


@dataclass(frozen=True)
class CategoryChangeContext:
    KINDS: ClassVar[frozenset[ApplicationKind]] = frozenset({ApplicationKind.CHANGE_CATEGORY})

    from_category: str
    to_category: str
    requires_payment: bool
    note: str | None = None
    kind: ApplicationKind = ApplicationKind.CHANGE_CATEGORY

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "from_category": self.from_category,
            "to_category": self.to_category,
            "requires_payment": self.requires_payment,
            "note": self.note,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> CategoryChangeContext:
        return cls(
            from_category=data["from_category"],
            to_category=data["to_category"],
            requires_payment=bool(data.get("requires_payment", True)),
            note=data.get("note"),
        )


@dataclass(frozen=True)
class CancellationContext:
    """Surrender of the certificate."""

    KINDS: ClassVar[frozenset[ApplicationKind]] = frozenset({ApplicationKind.CANCEL_CERTIFICATE})

    reason: str
    requires_payment: bool = False
    kind: ApplicationKind = ApplicationKind.CANCEL_CERTIFICATE

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "reason": self.reason,
            "requires_payment": self.requires_payment,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> CancellationContext:
        return cls(
            reason=data.get("reason") or "",
            requires_payment=bool(data.get("requires_payment", False)),
        )


@dataclass(frozen=True)
class RenewalContext:
    KINDS: ClassVar[frozenset[ApplicationKind]] = frozenset({ApplicationKind.RENEWAL})

    previous_certificate_number: str | None
    previous_expiry_date: date | None
    requires_payment: bool
    note: str | None = None
    kind: ApplicationKind = ApplicationKind.RENEWAL

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "previous_certificate_number": self.previous_certificate_number,
            "previous_expiry_date": (
                self.previous_expiry_date.isoformat() if self.previous_expiry_date else None
            ),
            "requires_payment": self.requires_payment,
            "note": self.note,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> RenewalContext:
        expiry = data.get("previous_expiry_date")
        return cls(
            previous_certificate_number=data.get("previous_certificate_number"),
            previous_expiry_date=date.fromisoformat(expiry) if expiry else None,
            requires_payment=bool(data.get("requires_payment", True)),
            note=data.get("note"),
        )


@dataclass(frozen=True)
class LegacyOnboardingContext:
    """Owner attesting an existing certificate; never charged."""

    KINDS: ClassVar[frozenset[ApplicationKind]] = frozenset({ApplicationKind.EXISTING_RC_ONBOARDING})

    requested_rooms_total: int | None
    guardian_name: str | None = None
    inherits_certificate_expiry: date | None = None
    note: str | None = None
    requires_payment: bool = False
    kind: ApplicationKind = ApplicationKind.EXISTING_RC_ONBOARDING

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "requested_rooms_total": self.requested_rooms_total,
            "guardian_name": self.guardian_name,
            "inherits_certificate_expiry": (
                self.inherits_certificate_expiry.isoformat()
                if self.inherits_certificate_expiry else None
            ),
            "note": self.note,
            "requires_payment": False,
            "legacy_onboarding": True,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> LegacyOnboardingContext:
        expiry = data.get("inherits_certificate_expiry")
        return cls(
            requested_rooms_total=data.get("requested_rooms_total"),
            guardian_name=data.get("guardian_name"),
            inherits_certificate_expiry=date.fromisoformat(expiry) if expiry else None,
            note=data.get("note"),
        )


ServiceContext = (
    RoomDeltaContext
    | CategoryChangeContext
    | CancellationContext
    | RenewalContext
    | LegacyOnboardingContext
)

_VARIANTS: dict[ApplicationKind, type] = {
    kind: variant
    for variant in (
        RoomDeltaContext,
        CategoryChangeContext,
        CancellationContext,
        RenewalContext,
        LegacyOnboardingContext,
    )
    for kind in variant.KINDS
}


def parse_service_context(
    application_kind: ApplicationKind | str,
    payload: dict[str, Any] | None,
) -> ServiceContext | None:
    """Decode a stored payload into its typed variant.

    Returns None for an absent payload.

    Raises:
        ServiceContextMismatchError: discriminator is missing, unknown, or
            differs from ``application_kind``.
    """
    if not payload:
        return None
    kind = ApplicationKind(application_kind)
    if payload.get("kind") != kind.value or kind not in _VARIANTS:
        raise ServiceContextMismatchError(kind.value, payload.get("kind"))
    return _VARIANTS[kind].from_payload(payload)


def encode_service_context(
    application_kind: ApplicationKind | str,
    context: ServiceContext,
) -> dict[str, Any]:
    """Serialise ``context`` after checking it belongs to ``application_kind``."""
    kind = ApplicationKind(application_kind)
    if kind not in type(context).KINDS or context.kind != kind:
        raise ServiceContextMismatchError(kind.value, getattr(context.kind, "value", context.kind))
    return context.to_payload()


def requires_payment(
    application_kind: ApplicationKind | str,
    context: ServiceContext | None,
    payment_required_kinds: frozenset[ApplicationKind],
) -> bool:
    """Whether the application must pass through ``payment_pending``.

    The flag snapshotted in the service context wins; applications without
    one (new registrations) fall back to the policy list.
    """
    if context is not None:
        return context.requires_payment
    return ApplicationKind(application_kind) in payment_required_kinds
