"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The ApplicationAction table is the portal's only historical record: there is
no event replay, so a rewritten action row would silently rewrite history.
Uploaded documents are evidence: a replacement is a new row, never an edit.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_action_delete() ---> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable        | Delete allowed?
--------------------|-----------------------|-----------------------------------
ApplicationAction   | ALWAYS                | Never
Document            | ALWAYS                | Yes, while owner may still edit
                    |                       | (enforced by DocumentService)
"""

from sqlalchemy import event

from homestay_kernel.exceptions import ImmutabilityViolationError
from homestay_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_action_immutability(mapper, connection, target):
    """Application actions are append-only."""
    _blocked(
        "ApplicationAction", target, "UPDATE",
        "Application actions are immutable and cannot be modified",
    )


def _check_action_delete(mapper, connection, target):
    _blocked(
        "ApplicationAction", target, "DELETE",
        "Application actions cannot be deleted",
    )


def _check_document_immutability(mapper, connection, target):
    """Documents are replaced, never edited."""
    _blocked(
        "Document", target, "UPDATE",
        "Documents cannot be modified; upload a replacement instead",
    )


_LISTENERS = (
    ("ApplicationAction", "before_update", _check_action_immutability),
    ("ApplicationAction", "before_delete", _check_action_delete),
    ("Document", "before_update", _check_document_immutability),
)


def _targets():
    from homestay_kernel.models.application_action import ApplicationAction
    from homestay_kernel.models.document import Document

    return {"ApplicationAction": ApplicationAction, "Document": Document}


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already attached are not attached twice.
    """
    targets = _targets()
    for name, event_name, fn in _LISTENERS:
        if not event.contains(targets[name], event_name, fn):
            event.listen(targets[name], event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to violate the rules on purpose.
    """
    targets = _targets()
    for name, event_name, fn in _LISTENERS:
        if event.contains(targets[name], event_name, fn):
            event.remove(targets[name], event_name, fn)
