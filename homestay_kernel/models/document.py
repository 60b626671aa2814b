"""
Module: homestay_kernel.models.document
Responsibility: ORM persistence for uploaded document metadata.  File bytes
    live in external object storage; only the reference is stored here.

Architecture position: Kernel > Models.

Invariants enforced:
    - document_type is drawn from the closed DocumentType vocabulary (CHECK).
    - Rows are never updated (ORM listener); replacement is delete + insert
      and only while the owning application is editable (DocumentService).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homestay_kernel.db.base import Base, UUIDString
from homestay_kernel.domain.statuses import DocumentType, sql_in

if TYPE_CHECKING:
    from homestay_kernel.domain.dtos import DocumentView
    from homestay_kernel.models.application import Application


class Document(Base):
    """Uploaded document reference owned by exactly one application."""

    __tablename__ = "documents"

    __table_args__ = (
        CheckConstraint(
            f"document_type IN ({sql_in(DocumentType)})",
            name="ck_documents_valid_type",
        ),
        Index("ix_documents_application_type", "application_id", "document_type"),
    )

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("applications.id"), nullable=False,
    )
    document_type: Mapped[str] = mapped_column(String(50), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size: Mapped[int] = mapped_column(nullable=False, default=0)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(nullable=False)

    application: Mapped[Application] = relationship(
        "Application", back_populates="documents",
    )

    def __repr__(self) -> str:
        return f"<Document {self.document_type} {self.file_name}>"

    def to_dto(self) -> DocumentView:
        from homestay_kernel.domain.dtos import DocumentView

        return DocumentView(
            id=self.id,
            application_id=self.application_id,
            document_type=self.document_type,
            file_name=self.file_name,
            file_path=self.file_path,
            file_size=self.file_size,
            mime_type=self.mime_type,
            uploaded_at=self.uploaded_at,
        )
