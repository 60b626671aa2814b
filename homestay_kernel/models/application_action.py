"""
Module: homestay_kernel.models.application_action
Responsibility: The append-only audit trail.  One row per status transition,
    plus narration rows (payment_confirmed, certificate_issued, superseded)
    written in the same transaction as the change they describe.

Architecture position: Kernel > Models.

Invariants enforced:
    - Append-only: ORM listeners reject UPDATE and DELETE
      (db/immutability.py).
    - (application_id, sequence) is unique; sequence numbers an
      application's actions in the order they were recorded.

Audit relevance:
    This table is the system's only historical record.  State is never
    re-derived from it, but every status an application has held is
    visible here with the actor who moved it.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from homestay_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from homestay_kernel.domain.dtos import ActionRecord


class ApplicationAction(Base):
    """Immutable audit row."""

    __tablename__ = "application_actions"

    __table_args__ = (
        UniqueConstraint("application_id", "sequence", name="uq_application_actions_sequence"),
        Index("ix_application_actions_created_at", "created_at"),
    )

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("applications.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    new_status: Mapped[str] = mapped_column(String(50), nullable=False)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ApplicationAction {self.action} "
            f"{self.previous_status}->{self.new_status}>"
        )

    def to_dto(self) -> ActionRecord:
        from homestay_kernel.domain.dtos import ActionRecord

        return ActionRecord(
            id=self.id,
            application_id=self.application_id,
            sequence=self.sequence,
            actor_id=self.actor_id,
            actor_role=self.actor_role,
            action=self.action,
            previous_status=self.previous_status,
            new_status=self.new_status,
            feedback=self.feedback,
            created_at=self.created_at,
        )
