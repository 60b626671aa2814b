"""
Canonical workflow types (``homestay_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines.  Both the primary licensing
workflow and the legacy RC onboarding workflow are expressed with these
types so that Guard, Transition, and Workflow are defined once.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* At most one transition per ``(from_state, action)`` pair.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from homestay_kernel.domain.actors import Role


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the workflow service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Contract: frozen.
    ``allowed_roles`` lists the roles that may fire it; ``owner_only`` further
    restricts it to the applicant who owns the application.
    ``event_driven=True`` marks a transition that no role may fire directly;
    only the named settlement path applies it.
    ``service_driven=True`` marks a transition whose preconditions live in a
    dedicated service; the generic transition entrypoint refuses it.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    allowed_roles: frozenset[Role] = field(default_factory=frozenset)
    owner_only: bool = False
    event_driven: bool = False
    service_driven: bool = False

    def __post_init__(self) -> None:
        # Enum members are accepted and stored as their plain string value.
        for name in ("from_state", "to_state"):
            value = getattr(self, name)
            object.__setattr__(self, name, getattr(value, "value", value))


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an application lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    ``terminal_states`` are states with no outgoing transitions.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state} not in states"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} "
                    f"{t.from_state}->{t.to_state} references unknown state"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate transition {t.action} from {t.from_state}"
                )
            seen.add(key)

    def find(self, from_state: str, action: str) -> Transition | None:
        """Transition for ``action`` out of ``from_state``, or None."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def has_action(self, action: str) -> bool:
        return any(t.action == action for t in self.transitions)
