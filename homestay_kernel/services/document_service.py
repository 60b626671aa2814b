"""
DocumentService -- document references attached to an application.

Responsibility:
    Attaches, replaces and removes uploaded-document references while the
    owning application is still editable by its owner.  File bytes live in
    external storage; only metadata is persisted.

Architecture position:
    Kernel > Services.  Also used by LegacyOnboardingService to swap the
    attested document set at submission.

Invariants enforced:
    - Documents are never updated in place: replacement is delete + insert.
    - Changes only while status is ``draft`` or ``correction_required``
      (the submission lock).
    - ``document_type`` is drawn from the closed vocabulary.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from homestay_kernel.domain.actors import Actor
from homestay_kernel.domain.authorization import require_owner
from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.dtos import DocumentView
from homestay_kernel.domain.intake import DocumentUpload
from homestay_kernel.domain.statuses import EDITABLE_STATUSES, DocumentType
from homestay_kernel.exceptions import (
    DocumentNotFoundError,
    DraftRequiredError,
    InvalidDocumentTypeError,
)
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import Application
from homestay_kernel.models.document import Document
from homestay_kernel.services.base import BaseService

logger = get_logger("services.document")


def document_type_of(upload: DocumentUpload) -> DocumentType:
    try:
        return DocumentType(upload.document_type)
    except ValueError:
        raise InvalidDocumentTypeError(upload.document_type) from None


class DocumentService(BaseService):
    """Owner-side document management under the submission lock."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _editable(self, application_id: UUID, actor: Actor, operation: str) -> Application:
        application = self._lock_application(application_id)
        require_owner(actor, application.user_id, operation)
        if application.current_status not in EDITABLE_STATUSES:
            raise DraftRequiredError(application.id, application.status, operation)
        return application

    def _new_document(self, application: Application, upload: DocumentUpload) -> Document:
        document = Document(
            application_id=application.id,
            document_type=document_type_of(upload).value,
            file_name=upload.file_name,
            file_path=upload.file_path,
            file_size=upload.file_size,
            mime_type=upload.mime_type,
            uploaded_at=self._clock.now(),
        )
        application.documents.append(document)
        return document

    def attach(self, application_id: UUID, actor: Actor, upload: DocumentUpload) -> DocumentView:
        """Add one document; existing documents of the same type are kept."""
        application = self._editable(application_id, actor, "attach_document")
        document = self._new_document(application, upload)
        self.session.flush()
        logger.info(
            "document_attached",
            extra={
                "application_id": str(application.id),
                "document_id": str(document.id),
                "document_type": document.document_type,
            },
        )
        return document.to_dto()

    def replace(self, application_id: UUID, actor: Actor, upload: DocumentUpload) -> DocumentView:
        """Drop every document of ``upload``'s type, then attach ``upload``."""
        application = self._editable(application_id, actor, "replace_document")
        doc_type = document_type_of(upload).value
        removed = [d for d in application.documents if d.document_type == doc_type]
        for document in removed:
            application.documents.remove(document)
        document = self._new_document(application, upload)
        self.session.flush()
        logger.info(
            "document_replaced",
            extra={
                "application_id": str(application.id),
                "document_type": doc_type,
                "removed_count": len(removed),
            },
        )
        return document.to_dto()

    def remove(self, application_id: UUID, document_id: UUID, actor: Actor) -> None:
        application = self._editable(application_id, actor, "remove_document")
        document = next((d for d in application.documents if d.id == document_id), None)
        if document is None:
            raise DocumentNotFoundError(document_id)
        application.documents.remove(document)
        self.session.flush()
        logger.info(
            "document_removed",
            extra={"application_id": str(application.id), "document_id": str(document_id)},
        )

    def replace_all(self, application: Application, uploads: Iterable[DocumentUpload]) -> None:
        """
        Swap the whole document set of an already-locked application.

        Caller has checked ownership and status.
        """
        uploads = list(uploads)
        for upload in uploads:
            document_type_of(upload)
        application.documents.clear()
        for upload in uploads:
            self._new_document(application, upload)
        self.session.flush()

