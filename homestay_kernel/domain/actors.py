"""
Actor identity as seen by the kernel.

The kernel does not authenticate anyone.  The boundary layer hands every
call an ``Actor`` (user id, role, and for officers the assigned district)
and the services decide whether that actor may act on a given application.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from uuid import UUID


@unique
class Role(str, Enum):
    PROPERTY_OWNER = "property_owner"
    DEALING_ASSISTANT = "dealing_assistant"
    DISTRICT_TOURISM_OFFICER = "district_tourism_officer"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    ADMIN_RC = "admin_rc"
    SYSTEM = "system"


# Officers whose authority is limited to one district.
DISTRICT_SCOPED_ROLES: frozenset[Role] = frozenset({
    Role.DEALING_ASSISTANT,
    Role.DISTRICT_TOURISM_OFFICER,
})

ADMIN_RC_ROLES: frozenset[Role] = frozenset({
    Role.ADMIN_RC,
    Role.ADMIN,
    Role.SUPER_ADMIN,
})

SETTINGS_ADMIN_ROLES: frozenset[Role] = frozenset({
    Role.ADMIN,
    Role.SUPER_ADMIN,
})

# Fixed identity used when the payment gateway callback confirms settlement.
GATEWAY_ACTOR_ID = UUID("00000000-0000-0000-0000-00000000feed")


@dataclass(frozen=True)
class Actor:
    """An authenticated caller.

    Contract: frozen.  ``district`` is required for district-scoped roles
    and compared as an exact, already-normalised string.
    """

    user_id: UUID
    role: Role
    district: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))
        if self.role in DISTRICT_SCOPED_ROLES and not self.district:
            raise ValueError(f"{self.role.value} actor requires an assigned district")

    @property
    def is_district_scoped(self) -> bool:
        return self.role in DISTRICT_SCOPED_ROLES

    def covers_district(self, district: str | None) -> bool:
        """True when the actor may act on an application in ``district``."""
        if not self.is_district_scoped:
            return True
        return district is not None and self.district == district

    @classmethod
    def gateway(cls) -> Actor:
        """The payment gateway callback identity."""
        return cls(user_id=GATEWAY_ACTOR_ID, role=Role.SYSTEM)
