"""
homestay_services.portal -- request-scoped facade over the licensing kernel.

Responsibility:
    The one entrypoint the API layer calls.  Each public method is one unit
    of work: it opens a session, binds the log context (correlation id,
    actor, operation), builds the services it needs against the effective
    policy (YAML baseline plus administrator overrides), runs the operation
    and commits.  Any exception rolls the whole unit back.

Architecture position:
    Services -- above ``homestay_kernel`` and ``homestay_config``.  The only
    place where kernel services are constructed and composed.

Invariants enforced:
    - One transaction per call: a status change, its action rows, its
      payment and its certificate either all commit or none do.
    - Database constraint violations surface as Conflict errors, never as
      driver exceptions.
    - Policy overrides are read inside the same transaction that uses them.

Failure modes:
    - Every kernel error propagates unchanged (after rollback); the API
      layer renders it with ``describe_error``.
    - IntegrityError -> ConflictError; StaleDataError ->
      ConcurrentModificationError.

Usage:
    portal = HomestayPortal(get_session_factory())
    view = portal.create_draft(owner, ApplicationDraft(...))
    portal.transition(view.id, "submit", owner)
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from homestay_config import get_active_policy
from homestay_kernel.db.engine import session_scope
from homestay_kernel.db.immutability import register_immutability_listeners
from homestay_kernel.domain.actors import DISTRICT_SCOPED_ROLES, SETTINGS_ADMIN_ROLES, Actor
from homestay_kernel.domain.authorization import require_district, require_role
from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.dtos import (
    ActionRecord,
    ApplicationView,
    CertificateVerification,
    DocumentView,
    PaymentView,
    SettlementResult,
    TrackingView,
    TransitionResult,
)
from homestay_kernel.domain.eligibility import ServiceSummary
from homestay_kernel.domain.intake import ApplicationDraft, DocumentUpload, LegacyIntake
from homestay_kernel.domain.policy import PortalPolicy
from homestay_kernel.domain.rooms import RoomBreakdown
from homestay_kernel.domain.statuses import ApplicationKind, ApplicationStatus
from homestay_kernel.exceptions import (
    ConcurrentModificationError,
    ConflictError,
    describe_error,
)
from homestay_kernel.logging_config import LogContext, get_logger
from homestay_kernel.selectors import (
    ActionSelector,
    ApplicationSelector,
    CertificateSelector,
    ServiceCenterSelector,
)
from homestay_kernel.services import (
    ApplicationService,
    DocumentService,
    LegacyOnboardingService,
    NumberingService,
    PaymentSettlementService,
    PortalSettingsService,
    ServiceRequestService,
    WorkflowService,
)

logger = get_logger("services.portal")

T = TypeVar("T")

_QUEUE_ROLES = DISTRICT_SCOPED_ROLES | SETTINGS_ADMIN_ROLES


@dataclass
class UnitOfWork:
    """Services wired for one transaction.  Built by ``HomestayPortal._unit``."""

    session: Session
    policy: PortalPolicy
    clock: Clock
    numbering: NumberingService
    settings: PortalSettingsService

    @property
    def applications(self) -> ApplicationService:
        return ApplicationService(self.session, self.policy, self.clock, self.numbering)

    @property
    def documents(self) -> DocumentService:
        return DocumentService(self.session, self.clock)

    @property
    def workflow(self) -> WorkflowService:
        return WorkflowService(self.session, self.policy, self.clock, numbering=self.numbering)

    @property
    def service_requests(self) -> ServiceRequestService:
        return ServiceRequestService(self.session, self.policy, self.clock, self.numbering)

    @property
    def payments(self) -> PaymentSettlementService:
        return PaymentSettlementService(self.session, self.policy, self.clock, self.numbering)

    @property
    def legacy(self) -> LegacyOnboardingService:
        return LegacyOnboardingService(self.session, self.policy, self.clock, self.numbering)


class HomestayPortal:
    """
    Facade over the licensing kernel.

    Contract:
        Every method commits on success and returns frozen DTOs only.

    Guarantees:
        - No ORM instance escapes a call.
        - Each call logs ``portal_operation_completed`` or
          ``portal_operation_failed`` with its duration.

    Non-goals:
        - Does NOT authenticate callers; the ``Actor`` is trusted input.
        - Does NOT retry on Conflict; the caller re-fetches and decides.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        policy: PortalPolicy | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ):
        self._session_factory = session_factory
        self._baseline = policy or get_active_policy()
        self._clock = clock or SystemClock()
        self._rng = rng
        register_immutability_listeners()

    @property
    def baseline_policy(self) -> PortalPolicy:
        return self._baseline

    # -- unit of work ------------------------------------------------------

    @contextmanager
    def _unit(self, operation: str, actor: Actor | None = None):
        started = time.monotonic()
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.user_id) if actor else None,
            actor_role=actor.role.value if actor else None,
            operation=operation,
        ):
            try:
                with session_scope(self._session_factory) as session:
                    settings = PortalSettingsService(session, self._clock)
                    policy = settings.effective_policy(self._baseline)
                    yield UnitOfWork(
                        session=session,
                        policy=policy,
                        clock=self._clock,
                        numbering=NumberingService(session, policy, rng=self._rng),
                        settings=settings,
                    )
            except IntegrityError as exc:
                logger.warning(
                    "portal_integrity_conflict",
                    extra={"detail": str(exc.orig)[:200]},
                )
                raise ConflictError(
                    "The request conflicts with existing data; re-fetch and retry",
                    attempted=operation,
                ) from exc
            except StaleDataError as exc:
                raise ConcurrentModificationError("Application", None) from exc
            except Exception as exc:
                logger.warning(
                    "portal_operation_failed",
                    extra={
                        "error": describe_error(exc),
                        "duration_ms": round((time.monotonic() - started) * 1000, 3),
                    },
                )
                raise
            logger.info(
                "portal_operation_completed",
                extra={"duration_ms": round((time.monotonic() - started) * 1000, 3)},
            )

    def _run(self, operation: str, actor: Actor | None, fn: Callable[[UnitOfWork], T]) -> T:
        with self._unit(operation, actor) as uow:
            return fn(uow)

    # -- registration ------------------------------------------------------

    def create_draft(self, actor: Actor, draft: ApplicationDraft) -> ApplicationView:
        return self._run(
            "create_draft", actor, lambda uow: uow.applications.create_draft(actor, draft),
        )

    def update_draft(
        self, application_id: UUID, actor: Actor, draft: ApplicationDraft,
    ) -> ApplicationView:
        return self._run(
            "update_draft", actor,
            lambda uow: uow.applications.update_details(application_id, actor, draft),
        )

    def discard_draft(self, application_id: UUID, actor: Actor) -> None:
        self._run(
            "discard_draft", actor,
            lambda uow: uow.applications.discard_draft(application_id, actor),
        )

    def attach_document(
        self, application_id: UUID, actor: Actor, upload: DocumentUpload,
    ) -> DocumentView:
        return self._run(
            "attach_document", actor,
            lambda uow: uow.documents.attach(application_id, actor, upload),
        )

    def replace_document(
        self, application_id: UUID, actor: Actor, upload: DocumentUpload,
    ) -> DocumentView:
        return self._run(
            "replace_document", actor,
            lambda uow: uow.documents.replace(application_id, actor, upload),
        )

    def remove_document(self, application_id: UUID, document_id: UUID, actor: Actor) -> None:
        self._run(
            "remove_document", actor,
            lambda uow: uow.documents.remove(application_id, document_id, actor),
        )

    # -- workflow ----------------------------------------------------------

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
        with LogContext.bind(application_id=str(application_id)):
            return self._run(
                action, actor,
                lambda uow: uow.workflow.transition(
                    application_id, action, actor,
                    expected_status=expected_status, feedback=feedback, amount=amount,
                ),
            )

    def create_service_request(
        self,
        parent_id: UUID,
        actor: Actor,
        kind: ApplicationKind | str,
        *,
        room_delta: RoomBreakdown | None = None,
        target_category: str | None = None,
        reason: str | None = None,
        note: str | None = None,
        validity_years: int | None = None,
    ) -> ApplicationView:
        return self._run(
            "create_service_request", actor,
            lambda uow: uow.service_requests.create(
                parent_id, actor, kind,
                room_delta=room_delta,
                target_category=target_category,
                reason=reason,
                note=note,
                validity_years=validity_years,
            ),
        )

    # -- payments ----------------------------------------------------------

    def confirm_payment(
        self,
        payment_id: UUID,
        actor: Actor,
        gateway_reference: str | None = None,
    ) -> SettlementResult:
        return self._run(
            "confirm_payment", actor,
            lambda uow: uow.payments.confirm(payment_id, actor, gateway_reference),
        )

    def mark_payment_failed(
        self,
        payment_id: UUID,
        actor: Actor,
        reason: str | None = None,
        gateway_reference: str | None = None,
    ) -> PaymentView:
        return self._run(
            "mark_payment_failed", actor,
            lambda uow: uow.payments.mark_failed(payment_id, actor, reason, gateway_reference),
        )

    # -- legacy RC onboarding ----------------------------------------------

    def save_legacy_draft(self, actor: Actor, intake: LegacyIntake) -> ApplicationView:
        return self._run(
            "save_legacy_draft", actor, lambda uow: uow.legacy.save_draft(actor, intake),
        )

    def submit_legacy(self, actor: Actor, intake: LegacyIntake) -> TransitionResult:
        return self._run(
            "submit_legacy", actor, lambda uow: uow.legacy.submit(actor, intake),
        )

    def approve_legacy(
        self, application_id: UUID, actor: Actor, feedback: str | None = None,
    ) -> TransitionResult:
        return self._run(
            "approve_legacy", actor,
            lambda uow: uow.legacy.approve(application_id, actor, feedback),
        )

    def reject_legacy(
        self, application_id: UUID, actor: Actor, feedback: str | None = None,
    ) -> TransitionResult:
        return self._run(
            "reject_legacy", actor,
            lambda uow: uow.legacy.reject(application_id, actor, feedback),
        )

    # -- administrator settings --------------------------------------------

    def effective_policy(self) -> PortalPolicy:
        return self._run("effective_policy", None, lambda uow: uow.policy)

    def set_inspection_disabled(
        self, actor: Actor, kind: ApplicationKind | str, disabled: bool,
    ) -> PortalPolicy:
        return self._run(
            "set_inspection_disabled", actor,
            lambda uow: uow.settings.set_inspection_disabled(actor, kind, disabled, self._baseline),
        )

    def set_legacy_cutoff(self, actor: Actor, cutoff: date) -> PortalPolicy:
        return self._run(
            "set_legacy_cutoff", actor,
            lambda uow: uow.settings.set_legacy_cutoff(actor, cutoff, self._baseline),
        )

    def set_legacy_serial_seed(self, actor: Actor, seed: int) -> PortalPolicy:
        return self._run(
            "set_legacy_serial_seed", actor,
            lambda uow: uow.settings.set_legacy_serial_seed(actor, seed, self._baseline),
        )

    # -- reads -------------------------------------------------------------

    def get_application(self, application_id: UUID) -> ApplicationView:
        return self._run(
            "get_application", None,
            lambda uow: ApplicationSelector(uow.session).get(application_id),
        )

    def my_applications(
        self, actor: Actor, include_superseded: bool = False,
    ) -> list[ApplicationView]:
        return self._run(
            "my_applications", actor,
            lambda uow: ApplicationSelector(uow.session).list_for_owner(
                actor.user_id, include_superseded,
            ),
        )

    def district_queue(
        self,
        actor: Actor,
        district: str | None = None,
        statuses: Iterable[ApplicationStatus | str] | None = None,
    ) -> list[ApplicationView]:
        """Officer worklist; district officers only see their own district."""
        require_role(actor, _QUEUE_ROLES, "district_queue")
        district = district or actor.district
        require_district(actor, district, "district_queue")
        return self._run(
            "district_queue", actor,
            lambda uow: ApplicationSelector(uow.session).list_for_district(district, statuses),
        )

    def track(self, application_number: str) -> TrackingView:
        return self._run(
            "track", None,
            lambda uow: ApplicationSelector(uow.session).track(application_number),
        )

    def history(self, application_id: UUID) -> list[ActionRecord]:
        return self._run(
            "history", None,
            lambda uow: ActionSelector(uow.session).history(application_id),
        )

    def notable_events(self, since: datetime, limit: int | None = None) -> list[ActionRecord]:
        return self._run(
            "notable_events", None,
            lambda uow: ActionSelector(uow.session).notable_events(since, limit),
        )

    def documents(self, application_id: UUID) -> list[DocumentView]:
        return self._run(
            "documents", None,
            lambda uow: ApplicationSelector(uow.session).documents(application_id),
        )

    def payments(self, application_id: UUID) -> list[PaymentView]:
        return self._run(
            "payments", None,
            lambda uow: ApplicationSelector(uow.session).payments(application_id),
        )

    def get_payment(self, payment_id: UUID) -> PaymentView:
        return self._run(
            "get_payment", None,
            lambda uow: ApplicationSelector(uow.session).payment(payment_id),
        )

    def service_center(self, actor: Actor) -> list[ServiceSummary]:
        return self._run(
            "service_center", actor,
            lambda uow: ServiceCenterSelector(uow.session, uow.policy, uow.clock)
            .summaries_for(actor.user_id),
        )

    def verify_certificate(self, certificate_number: str) -> CertificateVerification:
        return self._run(
            "verify_certificate", None,
            lambda uow: CertificateSelector(uow.session, uow.clock, uow.policy.timezone)
            .verify(certificate_number),
        )
