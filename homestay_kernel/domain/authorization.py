"""
Actor authorization rules.

Pure checks applied before any state change.  Messages never mention the
application's status, and role checks run before the application is
loaded so that an unauthorised role learns nothing about which ids exist.
"""

from __future__ import annotations

from uuid import UUID

from homestay_kernel.domain.actors import Actor, Role
from homestay_kernel.domain.workflow import Transition, Workflow
from homestay_kernel.exceptions import (
    DistrictScopeError,
    NotApplicationOwnerError,
    RoleNotPermittedError,
)


def require_role(actor: Actor, roles: frozenset[Role], operation: str) -> None:
    if actor.role not in roles:
        raise RoleNotPermittedError(actor.user_id, actor.role.value, operation)


def require_owner(actor: Actor, owner_id: UUID, operation: str) -> None:
    if actor.role is not Role.PROPERTY_OWNER or actor.user_id != owner_id:
        raise NotApplicationOwnerError(actor.user_id, operation)


def require_district(actor: Actor, district: str | None, operation: str) -> None:
    if not actor.covers_district(district):
        raise DistrictScopeError(actor.user_id, actor.district, operation)


def roles_for_action(workflow: Workflow, action: str) -> frozenset[Role]:
    """Every role that may fire ``action`` from some state."""
    roles: set[Role] = set()
    for t in workflow.transitions:
        if t.action == action:
            roles |= t.allowed_roles
    return frozenset(roles)


def authorize_transition(
    actor: Actor,
    transition: Transition,
    owner_id: UUID,
    district: str | None,
) -> None:
    """Full check once the application and matching transition are known."""
    require_role(actor, transition.allowed_roles, transition.action)
    if transition.owner_only:
        require_owner(actor, owner_id, transition.action)
    require_district(actor, district, transition.action)
