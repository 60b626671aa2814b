"""
PortalSettingsService -- administrator overrides on top of the YAML policy.

Responsibility:
    Reads and writes the ``system_settings`` rows an administrator controls
    and overlays them on the policy baseline:

        inspection_disabled_kinds        list of application kinds
        legacy_rc_min_issue_date         ISO date
        legacy_application_serial_seed   positive integer

    Values are stored as ``{"value": ...}`` so every row is a JSON object.

Architecture position:
    Kernel > Services.  ``HomestayPortal`` calls ``effective_policy`` at the
    start of each unit of work, so a toggle applies to the next transition
    evaluated after it commits.

Invariants enforced:
    - Inspection may only be disabled for kinds the baseline marks optional
      (InspectionToggleError otherwise).
    - Only ``admin`` and ``super_admin`` may change settings.

Audit relevance:
    Each change logs ``portal_setting_updated`` with the old and new value
    and records ``updated_by`` on the row.
"""

from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from homestay_kernel.domain.actors import SETTINGS_ADMIN_ROLES, Actor
from homestay_kernel.domain.authorization import require_role
from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.policy import PortalPolicy
from homestay_kernel.domain.statuses import ApplicationKind
from homestay_kernel.exceptions import InspectionToggleError, ValidationError
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.system_setting import SystemSetting
from homestay_kernel.services.base import BaseService

logger = get_logger("services.settings")

INSPECTION_DISABLED_KINDS = "inspection_disabled_kinds"
LEGACY_RC_MIN_ISSUE_DATE = "legacy_rc_min_issue_date"
LEGACY_SERIAL_SEED = "legacy_application_serial_seed"


class PortalSettingsService(BaseService):
    """
    Administrator-managed settings.

    Contract:
        Setters return the resulting effective policy for ``baseline``.

    Non-goals:
        - Does NOT persist the YAML baseline (homestay_config owns it).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _row(self, key: str) -> SystemSetting | None:
        return self.session.execute(
            select(SystemSetting).where(SystemSetting.key == key)
        ).scalar_one_or_none()

    def get(self, key: str, default: Any = None) -> Any:
        row = self._row(key)
        if row is None:
            return default
        return (row.value or {}).get("value", default)

    def _put(self, key: str, value: Any, actor: Actor) -> None:
        row = self._row(key)
        previous = None
        if row is None:
            row = SystemSetting(key=key)
            self.session.add(row)
        else:
            previous = (row.value or {}).get("value")
        row.value = {"value": value}
        row.updated_at = self._clock.now()
        row.updated_by = actor.user_id
        self.session.flush()
        logger.info(
            "portal_setting_updated",
            extra={
                "key": key,
                "previous_value": previous,
                "new_value": value,
                "updated_by": str(actor.user_id),
            },
        )

    # -- overlay -----------------------------------------------------------

    def effective_policy(self, baseline: PortalPolicy) -> PortalPolicy:
        """Baseline with every stored override applied."""
        changes: dict[str, Any] = {}

        disabled = self.get(INSPECTION_DISABLED_KINDS)
        if disabled is not None:
            # Kinds no longer optional in the baseline are ignored.
            changes["inspection_disabled_kinds"] = frozenset(
                ApplicationKind(k) for k in disabled
            ) & baseline.inspection_optional_kinds

        cutoff = self.get(LEGACY_RC_MIN_ISSUE_DATE)
        if cutoff:
            changes["legacy_rc_min_issue_date"] = date.fromisoformat(cutoff)

        seed = self.get(LEGACY_SERIAL_SEED)
        if seed is not None:
            changes["legacy_serial_seed"] = int(seed)

        if not changes:
            return baseline
        return baseline.with_overrides(**changes)

    # -- setters -----------------------------------------------------------

    def set_inspection_disabled(
        self,
        actor: Actor,
        kind: ApplicationKind | str,
        disabled: bool,
        baseline: PortalPolicy,
    ) -> PortalPolicy:
        """Turn the inspection step off (or back on) for an optional kind."""
        require_role(actor, SETTINGS_ADMIN_ROLES, "update_inspection_setting")
        try:
            kind = ApplicationKind(kind)
        except ValueError:
            raise InspectionToggleError(str(kind)) from None
        if kind not in baseline.inspection_optional_kinds:
            raise InspectionToggleError(kind.value)

        current = set(self.get(INSPECTION_DISABLED_KINDS, []))
        if disabled:
            current.add(kind.value)
        else:
            current.discard(kind.value)
        self._put(INSPECTION_DISABLED_KINDS, sorted(current), actor)
        return self.effective_policy(baseline)

    def set_legacy_cutoff(
        self,
        actor: Actor,
        cutoff: date,
        baseline: PortalPolicy,
    ) -> PortalPolicy:
        require_role(actor, SETTINGS_ADMIN_ROLES, "update_legacy_cutoff")
        self._put(LEGACY_RC_MIN_ISSUE_DATE, cutoff.isoformat(), actor)
        return self.effective_policy(baseline)

    def set_legacy_serial_seed(
        self,
        actor: Actor,
        seed: int,
        baseline: PortalPolicy,
    ) -> PortalPolicy:
        """Lowest serial the next legacy application number may use."""
        require_role(actor, SETTINGS_ADMIN_ROLES, "update_legacy_serial_seed")
        if isinstance(seed, bool) or not isinstance(seed, int) or seed < 1:
            raise ValidationError(
                "Legacy serial seed must be a positive whole number",
                field=LEGACY_SERIAL_SEED,
                attempted=seed,
            )
        self._put(LEGACY_SERIAL_SEED, seed, actor)
        return self.effective_policy(baseline)
