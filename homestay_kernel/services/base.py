"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services inherit
    from BaseService, receiving a SQLAlchemy ``Session`` that they use
    via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The caller
    (``HomestayPortal`` or a test harness) owns commit/rollback, which is
    what makes a status change and its audit row a single atomic unit.

    Serialised writes: ``_lock_application`` re-reads the row with
    ``SELECT ... FOR UPDATE`` so two transitions on one application queue
    behind each other; the optimistic ``version`` column catches writers
    on backends without row locks.

Failure modes:
    - ApplicationNotFoundError from ``_lock_application``.
    - ConcurrentModificationError from ``_flush`` when the version check
      fails.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from homestay_kernel.exceptions import (
    ApplicationNotFoundError,
    ConcurrentModificationError,
)
from homestay_kernel.models.application import Application


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods -- those belong
          in ``homestay_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session

    def _lock_application(self, application_id: UUID) -> Application:
        """Load an application with a row lock for the rest of the transaction."""
        application = self.session.execute(
            select(Application)
            .where(Application.id == application_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if application is None:
            raise ApplicationNotFoundError(application_id)
        return application

    def _flush(self, entity_type: str = "Application", entity_id=None) -> None:
        """Flush, translating an optimistic version failure into a conflict."""
        try:
            self.session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError(entity_type, entity_id) from exc
