"""
Licensing Workflows (``homestay_kernel.domain.workflows``).

Responsibility
--------------
Declares the state-machine definitions for the primary licensing lifecycle
(new registrations and every service-request kind) and the reduced legacy
RC onboarding lifecycle.  Guards express branch conditions evaluated by
``WorkflowService`` at transition time.

Architecture position
---------------------
**Kernel domain layer** -- declarative workflow definitions.  Imports the
canonical Guard, Transition, Workflow from ``homestay_kernel.domain.workflow``.

Invariants enforced
-------------------
* Forward transitions follow the fixed review sequence; the only backward
  edge is ``correction_required -> submitted`` (resubmission).
* ``payment_pending -> approved`` is ``event_driven``: no officer action
  reaches it, only payment settlement.
* Every legacy onboarding transition is ``service_driven``: the intake,
  cutoff and RC-number checks live in LegacyOnboardingService, so the
  generic transition entrypoint refuses these actions.
* ``approved -> superseded`` is not a transition of either workflow; it is
  applied to a parent by supersession when a child request is approved.
* Which states may send an application back for correction is a policy
  input, so the primary workflow is built per correction-state set.

Audit relevance
---------------
Workflow definitions are logged at module-load time with state and
transition counts for configuration audit.
"""

from functools import lru_cache

from homestay_kernel.domain.actors import ADMIN_RC_ROLES, Role
from homestay_kernel.domain.statuses import ApplicationStatus as S
from homestay_kernel.domain.workflow import Guard, Transition, Workflow
from homestay_kernel.logging_config import get_logger

logger = get_logger("domain.workflows")


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------

SUBMIT = "submit"
START_SCRUTINY = "start_scrutiny"
FORWARD_TO_DTDO = "forward_to_dtdo"
START_DTDO_REVIEW = "start_dtdo_review"
SCHEDULE_INSPECTION = "schedule_inspection"
VERIFY_WITHOUT_INSPECTION = "verify_without_inspection"
SUBMIT_INSPECTION_REPORT = "submit_inspection_report"
VERIFY_FOR_PAYMENT = "verify_for_payment"
REQUEST_PAYMENT = "request_payment"
APPROVE_WITHOUT_PAYMENT = "approve_without_payment"
CONFIRM_PAYMENT = "confirm_payment"
REJECT = "reject"
REQUEST_CORRECTION = "request_correction"
RESUBMIT = "resubmit"

SUBMIT_LEGACY = "submit_legacy"
APPROVE_LEGACY = "approve_legacy"
REJECT_LEGACY = "reject_legacy"

# Audit-only action names (not transitions)
PAYMENT_CONFIRMED = "payment_confirmed"
CERTIFICATE_ISSUED = "certificate_issued"
SUPERSEDED = "superseded"


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

INSPECTION_REQUIRED = Guard(
    name="inspection_required",
    description="Site inspection has not been waived for this application kind",
)

INSPECTION_WAIVED = Guard(
    name="inspection_waived",
    description="Kind is inspection-optional and an administrator disabled inspection",
)

PAYMENT_REQUIRED = Guard(
    name="payment_required",
    description="Service context records that a fee is payable",
)

PAYMENT_NOT_REQUIRED = Guard(
    name="payment_not_required",
    description="Service context records that no fee is payable",
)


_DA = frozenset({Role.DEALING_ASSISTANT})
_DTDO = frozenset({Role.DISTRICT_TOURISM_OFFICER})
_OFFICERS = _DA | _DTDO
_OWNER = frozenset({Role.PROPERTY_OWNER})

# Officer responsible for an application while it sits in each review state.
REVIEWER_FOR_STATE: dict[S, frozenset[Role]] = {
    S.SUBMITTED: _DA,
    S.UNDER_SCRUTINY: _DA,
    S.FORWARDED_TO_DTDO: _DTDO,
    S.DTDO_REVIEW: _DTDO,
    S.INSPECTION_SCHEDULED: _DTDO,
    S.INSPECTION_UNDER_REVIEW: _DTDO,
    S.VERIFIED_FOR_PAYMENT: _DTDO,
}

DEFAULT_CORRECTION_STATES: tuple[S, ...] = (S.UNDER_SCRUTINY, S.DTDO_REVIEW)

_PRIMARY_STATES = tuple(
    s.value for s in S if s is not S.LEGACY_RC_REVIEW
)

_PRIMARY_BASE: tuple[Transition, ...] = (
    Transition(S.DRAFT, S.SUBMITTED, SUBMIT, allowed_roles=_OWNER, owner_only=True),
    Transition(S.SUBMITTED, S.UNDER_SCRUTINY, START_SCRUTINY, allowed_roles=_DA),
    Transition(S.UNDER_SCRUTINY, S.FORWARDED_TO_DTDO, FORWARD_TO_DTDO, allowed_roles=_DA),
    Transition(S.UNDER_SCRUTINY, S.REJECTED, REJECT, allowed_roles=_DA),
    Transition(S.FORWARDED_TO_DTDO, S.DTDO_REVIEW, START_DTDO_REVIEW, allowed_roles=_DTDO),
    Transition(
        S.DTDO_REVIEW, S.INSPECTION_SCHEDULED, SCHEDULE_INSPECTION,
        guard=INSPECTION_REQUIRED, allowed_roles=_DTDO,
    ),
    Transition(
        S.DTDO_REVIEW, S.VERIFIED_FOR_PAYMENT, VERIFY_WITHOUT_INSPECTION,
        guard=INSPECTION_WAIVED, allowed_roles=_DTDO,
    ),
    Transition(S.DTDO_REVIEW, S.REJECTED, REJECT, allowed_roles=_DTDO),
    Transition(
        S.INSPECTION_SCHEDULED, S.INSPECTION_UNDER_REVIEW, SUBMIT_INSPECTION_REPORT,
        allowed_roles=_OFFICERS,
    ),
    Transition(
        S.INSPECTION_UNDER_REVIEW, S.VERIFIED_FOR_PAYMENT, VERIFY_FOR_PAYMENT,
        allowed_roles=_DTDO,
    ),
    Transition(S.INSPECTION_UNDER_REVIEW, S.REJECTED, REJECT, allowed_roles=_DTDO),
    Transition(
        S.VERIFIED_FOR_PAYMENT, S.PAYMENT_PENDING, REQUEST_PAYMENT,
        guard=PAYMENT_REQUIRED, allowed_roles=_DTDO,
    ),
    Transition(
        S.VERIFIED_FOR_PAYMENT, S.APPROVED, APPROVE_WITHOUT_PAYMENT,
        guard=PAYMENT_NOT_REQUIRED, allowed_roles=_DTDO,
    ),
    Transition(S.PAYMENT_PENDING, S.APPROVED, CONFIRM_PAYMENT, event_driven=True),
    Transition(
        S.CORRECTION_REQUIRED, S.SUBMITTED, RESUBMIT,
        allowed_roles=_OWNER, owner_only=True,
    ),
)


@lru_cache(maxsize=32)
def build_primary_workflow(
    correction_states: tuple[S, ...] = DEFAULT_CORRECTION_STATES,
) -> Workflow:
    """Primary licensing workflow with corrections allowed from ``correction_states``.

    Raises:
        ValueError: a correction state has no responsible reviewer.
    """
    corrections = []
    for state in correction_states:
        state = S(state)
        if state not in REVIEWER_FOR_STATE:
            raise ValueError(f"Correction cannot be requested from {state.value}")
        corrections.append(
            Transition(
                state, S.CORRECTION_REQUIRED, REQUEST_CORRECTION,
                allowed_roles=REVIEWER_FOR_STATE[state],
            )
        )
    return Workflow(
        name="homestay_licensing",
        description="Registration and service-request review lifecycle",
        initial_state=S.DRAFT.value,
        states=_PRIMARY_STATES,
        transitions=_PRIMARY_BASE + tuple(corrections),
        terminal_states=(S.APPROVED.value, S.REJECTED.value, S.SUPERSEDED.value),
    )


PRIMARY_WORKFLOW = build_primary_workflow()

LEGACY_WORKFLOW = Workflow(
    name="legacy_rc_onboarding",
    description="Attestation of a pre-existing registration certificate",
    initial_state=S.DRAFT.value,
    states=(
        S.DRAFT.value,
        S.LEGACY_RC_REVIEW.value,
        S.APPROVED.value,
        S.REJECTED.value,
        S.SUPERSEDED.value,
    ),
    transitions=(
        Transition(
            S.DRAFT, S.LEGACY_RC_REVIEW, SUBMIT_LEGACY,
            allowed_roles=_OWNER, owner_only=True, service_driven=True,
        ),
        Transition(
            S.LEGACY_RC_REVIEW, S.APPROVED, APPROVE_LEGACY,
            allowed_roles=ADMIN_RC_ROLES, service_driven=True,
        ),
        Transition(
            S.LEGACY_RC_REVIEW, S.REJECTED, REJECT_LEGACY,
            allowed_roles=ADMIN_RC_ROLES, service_driven=True,
        ),
    ),
    terminal_states=(S.APPROVED.value, S.REJECTED.value, S.SUPERSEDED.value),
)

logger.info(
    "licensing_workflows_registered",
    extra={
        "workflows": [
            {
                "name": wf.name,
                "states": len(wf.states),
                "transitions": len(wf.transitions),
            }
            for wf in (PRIMARY_WORKFLOW, LEGACY_WORKFLOW)
        ],
    },
)
