"""
WorkflowService -- the single authority for application status changes.

Responsibility:
    Executes one named action against one application: authorises the
    actor, checks the caller's expected status, finds the declared
    transition, evaluates its guard, validates action-specific input,
    mutates the status, appends exactly one action row, and (on entering
    ``approved``) issues the certificate.  Everything happens inside the
    caller's transaction.

Architecture position:
    Kernel > Services -- imperative shell around the declarative
    workflows in ``homestay_kernel.domain.workflows``.

Invariants enforced:
    - Atomic narration: the status change and its action row are flushed in
      the same transaction; if either fails the caller rolls back both.
    - Serialised transitions: the application row is read with
      ``SELECT ... FOR UPDATE`` and carries an optimistic version, so of two
      concurrent transitions on one id at most one succeeds.
    - ``payment_pending -> approved`` is event driven: it is refused here and
      only PaymentSettlementService applies it.
    - Legacy onboarding actions are service driven: ``transition`` refuses
      them and LegacyOnboardingService applies them through
      ``service_transition`` after its intake checks.  Legacy approval also
      refuses a row with no attested RC number.
    - Role checks run before the row is loaded; district scope and
      ownership are checked before anything about the status is revealed.

Failure modes:
    - RoleNotPermittedError / NotApplicationOwnerError / DistrictScopeError.
    - ApplicationNotFoundError.
    - StaleApplicationStateError: ``expected_status`` no longer holds.
    - IllegalTransitionError: no such action from the current status, or
      its guard fails.
    - ConcurrentModificationError: optimistic version check failed.
    - Validation errors from submission checks and payment requests.

Audit relevance:
    Every successful call emits ``application_transitioned`` with the
    from/to status, the actor and the elapsed time.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from homestay_kernel.domain.actors import Actor
from homestay_kernel.domain.authorization import (
    authorize_transition,
    require_district,
    require_owner,
    require_role,
    roles_for_action,
)
from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.dtos import TransitionResult
from homestay_kernel.domain.policy import PortalPolicy
from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.service_context import requires_payment
from homestay_kernel.domain.statuses import (
    ApplicationKind,
    ApplicationStatus,
    PaymentStatus,
)
from homestay_kernel.domain.workflow import Guard, Transition, Workflow
from homestay_kernel.domain.workflows import (
    APPROVE_LEGACY,
    LEGACY_WORKFLOW,
    PRIMARY_WORKFLOW,
    REQUEST_PAYMENT,
    RESUBMIT,
    SUBMIT,
    SUBMIT_LEGACY,
    build_primary_workflow,
)
from homestay_kernel.exceptions import (
    IllegalTransitionError,
    IncompleteApplicationError,
    InvalidValidityTierError,
    MissingDocumentsError,
    StaleApplicationStateError,
    ValidationError,
)
from homestay_kernel.logging_config import LogContext, get_logger
from homestay_kernel.models.application import Application
from homestay_kernel.models.payment import Payment
from homestay_kernel.services.audit_service import AuditService
from homestay_kernel.services.base import BaseService
from homestay_kernel.services.certificate_issuer import CertificateIssuer
from homestay_kernel.services.numbering_service import NumberingService

logger = get_logger("services.workflow")

TRACE_TYPE_APPLICATION_TRANSITION = "APPLICATION_TRANSITION"

# Owner-entered fields a new registration needs before it can be submitted.
REQUIRED_SUBMISSION_FIELDS = ("property_name", "owner_name", "district", "address", "category")


@dataclass(frozen=True)
class GuardContext:
    """What a guard evaluator may look at."""

    application: Application
    policy: PortalPolicy


class GuardExecutor:
    """Evaluates workflow guards by name.

    Guards are declared on transitions (name + description).  This executor
    holds the evaluation logic per guard name.  An unknown guard fails
    closed.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[GuardContext], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[GuardContext], bool]) -> None:
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: GuardContext) -> bool:
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return False
        return bool(fn(context))


def _payment_required(ctx: GuardContext) -> bool:
    app = ctx.application
    return requires_payment(
        app.application_kind, app.service_context, ctx.policy.payment_required_kinds,
    )


def default_guard_executor() -> GuardExecutor:
    """GuardExecutor with the licensing guards registered."""
    ex = GuardExecutor()
    ex.register(
        "inspection_required",
        lambda ctx: not ctx.policy.inspection_waived(ctx.application.application_kind),
    )
    ex.register(
        "inspection_waived",
        lambda ctx: ctx.policy.inspection_waived(ctx.application.application_kind),
    )
    ex.register("payment_required", _payment_required)
    ex.register("payment_not_required", lambda ctx: not _payment_required(ctx))
    return ex


def workflow_for(application: Application, policy: PortalPolicy) -> Workflow:
    """Legacy onboarding has its own workflow; every other kind shares the primary one."""
    if application.kind is ApplicationKind.EXISTING_RC_ONBOARDING:
        return LEGACY_WORKFLOW
    return build_primary_workflow(policy.correction_states_for(application.kind))


def _all_action_roles(action: str) -> frozenset:
    # Correction roles vary with policy; every reviewer role may request one.
    return roles_for_action(PRIMARY_WORKFLOW, action) | roles_for_action(LEGACY_WORKFLOW, action)


def _has_flag(action: str, flag: str) -> bool:
    return any(
        t.action == action and getattr(t, flag)
        for wf in (PRIMARY_WORKFLOW, LEGACY_WORKFLOW)
        for t in wf.transitions
    )


class WorkflowService(BaseService):
    """
    Executes workflow transitions with guard evaluation.

    Contract:
        ``transition()`` returns a frozen ``TransitionResult``; all writes
        flush within the caller's transaction.

    Guarantees:
        - Exactly one action row per status change, with matching
          previous/new status.
        - An application enters ``approved`` only together with its
          certificate fields.

    Non-goals:
        - Does NOT confirm payments (PaymentSettlementService).
        - Does NOT create service requests (ServiceRequestService).
    """

    def __init__(
        self,
        session: Session,
        policy: PortalPolicy,
        clock: Clock | None = None,
        guards: GuardExecutor | None = None,
        numbering: NumberingService | None = None,
    ):
        super().__init__(session)
        self._policy = policy
        self._clock = clock or SystemClock()
        self._guards = guards or default_guard_executor()
        self._audit = AuditService(session, self._clock)
        self._issuer = CertificateIssuer(
            session, policy, self._clock,
            numbering=numbering or NumberingService(session, policy),
            audit=self._audit,
        )

    def transition(
        self,
        application_id: UUID,
        action: str,
        actor: Actor,
        *,
        expected_status: ApplicationStatus | str | None = None,
        feedback: str | None = None,
        amount: Decimal | None = None,
    ) -> TransitionResult:
        """
        Apply ``action`` to an application.

        Args:
            application_id: Target application.
            action: Workflow action name (``submit``, ``forward_to_dtdo``...).
            actor: Authenticated caller.
            expected_status: Optional precondition; when given and the
                stored status differs the call fails with a Conflict.
            feedback: Free text recorded on the action row.
            amount: Fee for ``request_payment``; defaults to the policy fee.

        Returns:
            TransitionResult with the updated application view.
        """
        self._require_known(action)
        if _has_flag(action, "event_driven"):
            raise IllegalTransitionError(
                application_id, "unknown", action,
                reason="only payment settlement may apply this transition",
            )
        if _has_flag(action, "service_driven"):
            raise IllegalTransitionError(
                application_id, "unknown", action,
                reason="only legacy onboarding may apply this transition",
            )
        return self._execute(application_id, action, actor, expected_status, feedback, amount)

    def service_transition(
        self,
        application_id: UUID,
        action: str,
        actor: Actor,
        *,
        expected_status: ApplicationStatus | str | None = None,
        feedback: str | None = None,
    ) -> TransitionResult:
        """
        Apply a ``service_driven`` action on behalf of the service that owns it.

        The calling service has already checked the action's preconditions;
        authorization, locking, guards and audit still run here.

        Raises:
            IllegalTransitionError: ``action`` is not service driven.
        """
        self._require_known(action)
        if not _has_flag(action, "service_driven"):
            raise IllegalTransitionError(
                application_id, "unknown", action,
                reason="use transition() for this action",
            )
        return self._execute(application_id, action, actor, expected_status, feedback, None)

    # -- internals ---------------------------------------------------------

    @staticmethod
    def _require_known(action: str) -> None:
        if not any(wf.has_action(action) for wf in (PRIMARY_WORKFLOW, LEGACY_WORKFLOW)):
            raise ValidationError(
                f"Unknown workflow action {action!r}", field="action", attempted=action,
            )

    def _execute(
        self,
        application_id: UUID,
        action: str,
        actor: Actor,
        expected_status: ApplicationStatus | str | None,
        feedback: str | None,
        amount: Decimal | None,
    ) -> TransitionResult:
        started = time.monotonic()
        require_role(actor, _all_action_roles(action), action)

        application = self._lock_application(application_id)
        with LogContext.bind_application(application):
            workflow = workflow_for(application, self._policy)
            current = application.status

            transition = workflow.find(current, action)
            if transition is not None:
                authorize_transition(actor, transition, application.user_id, application.district)
            else:
                self._authorize_scope(actor, workflow, action, application)

            if expected_status is not None:
                expected = ApplicationStatus(expected_status).value
                if expected != current:
                    raise StaleApplicationStateError(
                        application.id, current, expected,
                        transition.to_state if transition else None,
                    )
            if transition is None:
                raise IllegalTransitionError(application.id, current, action)

            if transition.guard is not None and not self._guards.evaluate(
                transition.guard, GuardContext(application, self._policy)
            ):
                raise IllegalTransitionError(
                    application.id, current, action, reason=transition.guard.description,
                )

            if action in (SUBMIT, RESUBMIT):
                self._validate_submission(application)
            elif action == APPROVE_LEGACY and not application.legacy_rc_number:
                raise IncompleteApplicationError(["rc_number"])
            fee = self._fee(application, amount) if action == REQUEST_PAYMENT else None

            return self._apply(
                application, transition, actor, feedback, fee, workflow, started,
            )

    def _authorize_scope(
        self,
        actor: Actor,
        workflow: Workflow,
        action: str,
        application: Application,
    ) -> None:
        """Ownership and district checks for an action illegal from the current status.

        Run before the illegal-transition error so that out-of-scope actors
        receive an authorization error and learn nothing about the status.
        """
        if any(t.owner_only for t in workflow.transitions if t.action == action):
            require_owner(actor, application.user_id, action)
        require_district(actor, application.district, action)

    def _validate_submission(self, application: Application) -> None:
        """Checks an application must pass before it enters review."""
        if application.kind is ApplicationKind.NEW_REGISTRATION:
            missing = [
                name for name in REQUIRED_SUBMISSION_FIELDS
                if not getattr(application, name)
            ]
            if missing:
                raise IncompleteApplicationError(missing)

        RoomBreakdown.validated(
            application.total_rooms,
            application.single_bed_rooms,
            application.double_bed_rooms,
            application.family_suites,
            self._policy.max_rooms_allowed,
        )

        if application.kind is not ApplicationKind.CANCEL_CERTIFICATE:
            years = application.certificate_validity_years
            if years not in self._policy.validity_tiers:
                raise InvalidValidityTierError(years, self._policy.validity_tiers)

        present = {d.document_type for d in application.documents}
        missing_docs = sorted(
            d.value for d in self._policy.required_documents_for(application.kind)
            if d.value not in present
        )
        if missing_docs:
            raise MissingDocumentsError(missing_docs)

    def _fee(self, application: Application, amount: Decimal | None) -> Decimal:
        if amount is not None:
            amount = Decimal(amount)
            if amount <= 0:
                raise ValidationError(
                    "Payment amount must be positive", field="amount", attempted=str(amount),
                )
            return amount
        annual = self._policy.fee_for(application.kind, application.category)
        if annual is None:
            raise ValidationError(
                f"No fee is scheduled for {application.application_kind}; "
                "an amount must be given",
                field="amount",
            )
        return annual * (application.certificate_validity_years or 1)

    def _apply(
        self,
        application: Application,
        transition: Transition,
        actor: Actor,
        feedback: str | None,
        fee: Decimal | None,
        workflow: Workflow,
        started: float,
    ) -> TransitionResult:
        previous = application.status
        now = self._clock.now()

        application.status = transition.to_state
        application.updated_at = now
        if transition.action in (SUBMIT, RESUBMIT, SUBMIT_LEGACY):
            application.submitted_at = now
        self._flush("Application", application.id)

        self._audit.record(
            application, actor, transition.action, previous, transition.to_state, feedback,
        )

        if transition.to_state == ApplicationStatus.APPROVED.value:
            if transition.action == APPROVE_LEGACY:
                self._confirm_legacy_certificate(application, now)
            else:
                self._issuer.issue(application, actor)

        payment = None
        if fee is not None:
            payment = Payment(
                application_id=application.id,
                amount=fee,
                payment_status=PaymentStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            self.session.add(payment)
            self.session.flush()

        logger.info(
            "application_transitioned",
            extra={
                "trace_type": TRACE_TYPE_APPLICATION_TRANSITION,
                "workflow": workflow.name,
                "action": transition.action,
                "from_status": previous,
                "to_status": transition.to_state,
                "actor_role": actor.role.value,
                "duration_ms": round((time.monotonic() - started) * 1000, 3),
            },
        )
        return TransitionResult(
            application=application.to_dto(),
            action=transition.action,
            from_status=previous,
            to_status=transition.to_state,
            payment=payment.to_dto() if payment is not None else None,
        )

    def _confirm_legacy_certificate(self, application: Application, now) -> None:
        """Approved legacy onboarding adopts the attested RC number."""
        application.certificate_number = application.legacy_rc_number
        application.approved_at = now
        self._flush("Application", application.id)
