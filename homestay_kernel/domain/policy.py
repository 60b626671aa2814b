"""
Portal Policy (``homestay_kernel.domain.policy``).

Responsibility
--------------
The reference/policy data consumed by the state machine and the eligibility
engine: room caps, renewal window, certificate validity tiers, inspection
optionality, which kinds are charged a fee, legacy onboarding cutoff,
numbering formats and district codes.

Architecture position
---------------------
**Kernel domain layer** -- a frozen value object.  Built from YAML by
``homestay_config.get_active_policy()`` and overlaid with administrator
settings by ``PortalSettingsService.effective_policy()``.  The kernel never
reads configuration files itself.

Invariants enforced
-------------------
* ``1 <= min_rooms_after_delete <= max_rooms_allowed``.
* Validity tiers are positive whole years.
* Inspection can only be disabled for kinds the policy marks optional.
* Correction states are review states with a responsible officer.

Failure modes
-------------
* ``ValueError`` at construction if any constraint is violated.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Self

from homestay_kernel.domain.statuses import (
    ApplicationKind,
    ApplicationStatus,
    DocumentType,
)
from homestay_kernel.domain.workflows import DEFAULT_CORRECTION_STATES, REVIEWER_FOR_STATE
from homestay_kernel.logging_config import get_logger

logger = get_logger("domain.policy")

NUMBERING_STRATEGIES = frozenset({"random", "sequential"})

_K = ApplicationKind


def _kinds(values) -> frozenset[ApplicationKind]:
    return frozenset(ApplicationKind(v) for v in values)


@dataclass(frozen=True)
class PortalPolicy:
    """Policy inputs for the licensing workflow.

    Defaults mirror the published homestay rules; deployments override them
    through the YAML policy set.
    """

    max_rooms_allowed: int = 6
    min_rooms_after_delete: int = 1
    renewal_window_days: int = 90
    validity_tiers: tuple[int, ...] = (1, 3)

    inspection_optional_kinds: frozenset[ApplicationKind] = frozenset({
        _K.DELETE_ROOMS,
        _K.CANCEL_CERTIFICATE,
    })
    # Administrator toggle; always a subset of inspection_optional_kinds
    inspection_disabled_kinds: frozenset[ApplicationKind] = frozenset()

    payment_required_kinds: frozenset[ApplicationKind] = frozenset({
        _K.NEW_REGISTRATION,
        _K.ADD_ROOMS,
        _K.CHANGE_CATEGORY,
        _K.RENEWAL,
    })
    fee_schedule: dict[ApplicationKind, dict[str, Decimal]] = field(default_factory=dict)

    correction_states: dict[ApplicationKind, tuple[ApplicationStatus, ...]] = field(
        default_factory=dict
    )
    required_documents: dict[ApplicationKind, frozenset[DocumentType]] = field(
        default_factory=lambda: {
            _K.NEW_REGISTRATION: frozenset({
                DocumentType.OWNERSHIP_PROOF,
                DocumentType.OWNER_IDENTITY_PROOF,
            }),
            _K.EXISTING_RC_ONBOARDING: frozenset({
                DocumentType.LEGACY_CERTIFICATE,
                DocumentType.OWNER_IDENTITY_PROOF,
            }),
        }
    )

    legacy_rc_min_issue_date: date = date(2022, 1, 1)
    legacy_serial_seed: int = 1

    certificate_numbering: str = "random"
    certificate_prefix: str = "HP-HST"
    application_prefix: str = "HP-HS"
    legacy_application_prefix: str = "LG-HS"
    district_codes: dict[str, str] = field(default_factory=dict)
    timezone: str = "Asia/Kolkata"

    def __post_init__(self):
        if self.max_rooms_allowed < 1:
            raise ValueError("max_rooms_allowed must be at least 1")
        if not 1 <= self.min_rooms_after_delete <= self.max_rooms_allowed:
            raise ValueError(
                f"min_rooms_after_delete ({self.min_rooms_after_delete}) must be "
                f"between 1 and max_rooms_allowed ({self.max_rooms_allowed})"
            )
        if self.renewal_window_days < 0:
            raise ValueError("renewal_window_days cannot be negative")
        if not self.validity_tiers or any(
            not isinstance(t, int) or t < 1 for t in self.validity_tiers
        ):
            raise ValueError("validity_tiers must be positive whole years")
        if not self.inspection_disabled_kinds <= self.inspection_optional_kinds:
            extra = sorted(k.value for k in self.inspection_disabled_kinds - self.inspection_optional_kinds)
            raise ValueError(f"inspection cannot be disabled for mandatory kinds: {extra}")
        for kind, states in self.correction_states.items():
            for state in states:
                if ApplicationStatus(state) not in REVIEWER_FOR_STATE:
                    raise ValueError(
                        f"correction_states for {kind.value}: {state} is not a review state"
                    )
        if self.certificate_numbering not in NUMBERING_STRATEGIES:
            raise ValueError(
                f"certificate_numbering must be one of {sorted(NUMBERING_STRATEGIES)}, "
                f"got '{self.certificate_numbering}'"
            )
        if self.legacy_serial_seed < 1:
            raise ValueError("legacy_serial_seed must be at least 1")

        logger.debug(
            "portal_policy_initialized",
            extra={
                "max_rooms_allowed": self.max_rooms_allowed,
                "min_rooms_after_delete": self.min_rooms_after_delete,
                "renewal_window_days": self.renewal_window_days,
                "validity_tiers": list(self.validity_tiers),
                "inspection_disabled_kinds": sorted(k.value for k in self.inspection_disabled_kinds),
                "certificate_numbering": self.certificate_numbering,
            },
        )

    # -- queries -----------------------------------------------------------

    def inspection_waived(self, kind: ApplicationKind | str) -> bool:
        """Inspection is skipped only when optional AND disabled by an administrator."""
        kind = ApplicationKind(kind)
        return kind in self.inspection_optional_kinds and kind in self.inspection_disabled_kinds

    def correction_states_for(self, kind: ApplicationKind | str) -> tuple[ApplicationStatus, ...]:
        return self.correction_states.get(ApplicationKind(kind), DEFAULT_CORRECTION_STATES)

    def required_documents_for(self, kind: ApplicationKind | str) -> frozenset[DocumentType]:
        return self.required_documents.get(ApplicationKind(kind), frozenset())

    def fee_for(self, kind: ApplicationKind | str, category: str | None) -> Decimal | None:
        """Scheduled fee for ``kind`` in ``category``, or None if not scheduled."""
        by_category = self.fee_schedule.get(ApplicationKind(kind), {})
        if category and category in by_category:
            return by_category[category]
        return by_category.get("default")

    # -- construction ------------------------------------------------------

    def with_overrides(self, **changes: Any) -> Self:
        """Copy with administrator overrides applied (re-validated)."""
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create policy from a plain mapping (e.g. parsed YAML).

        Raises:
            ValueError: unknown kinds/statuses/document types or failed validation.
        """
        data = dict(data)
        logger.info("portal_policy_loading_from_dict", extra={"keys": sorted(data.keys())})
        for key in ("inspection_optional_kinds", "inspection_disabled_kinds", "payment_required_kinds"):
            if key in data:
                data[key] = _kinds(data[key] or ())
        if "validity_tiers" in data:
            data["validity_tiers"] = tuple(int(t) for t in data["validity_tiers"])
        if "correction_states" in data:
            data["correction_states"] = {
                ApplicationKind(kind): tuple(ApplicationStatus(s) for s in states)
                for kind, states in (data["correction_states"] or {}).items()
            }
        if "required_documents" in data:
            data["required_documents"] = {
                ApplicationKind(kind): frozenset(DocumentType(d) for d in docs)
                for kind, docs in (data["required_documents"] or {}).items()
            }
        if "fee_schedule" in data:
            data["fee_schedule"] = {
                ApplicationKind(kind): {
                    str(cat): Decimal(str(amount)) for cat, amount in (fees or {}).items()
                }
                for kind, fees in (data["fee_schedule"] or {}).items()
            }
        if "legacy_rc_min_issue_date" in data and isinstance(data["legacy_rc_min_issue_date"], str):
            data["legacy_rc_min_issue_date"] = date.fromisoformat(data["legacy_rc_min_issue_date"])
        if "district_codes" in data:
            data["district_codes"] = {str(k): str(v) for k, v in (data["district_codes"] or {}).items()}
        return cls(**data)
