"""
Module: homestay_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    form the read side of the kernel: dashboards, worklists, tracking,
    certificate verification and the owner's service center.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    pure domain modules.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(), flush()
      or commit().
    - DTO return convention: selectors return frozen dataclasses, never ORM
      instances.
    - Derived, not stored: stage labels and renewal eligibility are computed
      on every read.

Failure modes:
    - NotFoundError subclasses when a caller asks for one specific record
      that does not exist.  List queries return empty lists instead.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from homestay_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.

    Non-goals:
        - BaseSelector does NOT define query methods.
    """

    def __init__(self, session: Session):
        self.session = session
