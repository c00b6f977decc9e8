"""Document ingestion service.

`DocumentService.submit_document` is the only path that takes a document out
of `pending`. It persists first and dispatches second so a stored row exists
for every upload a caller was told about, even when Kafka is down. After the
dispatch attempt the stored status is reconciled on a best-effort basis:

* dispatch failed -> status `failed`, the `DispatchError` is re-raised;
* dispatch succeeded -> status `processing`, success is returned even if the
  status write itself fails, because the broker already has the message.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Protocol, Tuple

from finance_assistant.core.exceptions import (
    DispatchError,
    DocumentNotFoundError,
    OwnerNotFoundError,
    PersistenceError,
)
from finance_assistant.models import Document, DocumentStatus
from finance_assistant.storage.base import DocumentRepository, UserRepository
from finance_assistant.utils.monitoring import observe_submission

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


class DocumentDispatcher(Protocol):
    async def send_document(self, document: Document) -> object: ...


def normalize_page(page: int, per_page: int) -> Tuple[int, int, int]:
    """Clamp pagination input and return `(page, per_page, offset)`."""
    if page < 1:
        page = 1
    if per_page < 1:
        per_page = DEFAULT_PAGE_SIZE
    return page, per_page, (page - 1) * per_page


class DocumentService:
    def __init__(
        self,
        documents: DocumentRepository,
        users: UserRepository,
        producer: DocumentDispatcher,
    ) -> None:
        self.documents = documents
        self.users = users
        self.producer = producer

    async def submit_document(
        self,
        owner_handle: uuid.UUID,
        document_type: str,
        filename: str,
        content_type: str,
        file_content: str,
        categories: Optional[List[str]] = None,
    ) -> Document:
        """Validate, persist and dispatch a new document for `owner_handle`."""

        owner = await self.users.find_by_external_id(owner_handle)
        if owner is None:
            observe_submission("owner_not_found")
            raise OwnerNotFoundError()

        document = Document.new(owner.id, document_type, filename, content_type, file_content, categories)

        try:
            await self.documents.create(document)
        except Exception as exc:
            observe_submission("persistence_failed")
            logger.exception("Failed to store document %s", document.external_id)
            raise PersistenceError("Failed to store document") from exc

        logger.info("Document %s stored as pending; dispatching for processing", document.external_id)

        try:
            await self.producer.send_document(document)
        except DispatchError:
            observe_submission("dispatch_failed")
            document.update_status(DocumentStatus.FAILED)
            await self._reconcile(document, DocumentStatus.FAILED)
            raise

        document.update_status(DocumentStatus.PROCESSING)
        await self._reconcile(document, DocumentStatus.PROCESSING)
        observe_submission("accepted")
        return document

    async def _reconcile(self, document: Document, status: DocumentStatus) -> None:
        try:
            await self.documents.update_status(document.id, status)
        except Exception as exc:
            logger.warning(
                "Could not mark document %s as %s: %s",
                document.external_id,
                status.value,
                exc,
            )

    async def get_document(self, external_id: uuid.UUID) -> Document:
        document = await self.documents.find_by_external_id(external_id)
        if document is None:
            raise DocumentNotFoundError()
        return document

    async def list_user_documents(
        self, owner_handle: uuid.UUID, page: int = 1, per_page: int = DEFAULT_PAGE_SIZE
    ) -> Tuple[List[Document], int]:
        owner = await self.users.find_by_external_id(owner_handle)
        if owner is None:
            raise OwnerNotFoundError()

        page, per_page, offset = normalize_page(page, per_page)
        total = await self.documents.count_by_owner(owner.id)
        documents = await self.documents.find_by_owner(owner.id, per_page, offset)
        return documents or [], total

    async def list_documents(self, page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> Tuple[List[Document], int]:
        page, per_page, offset = normalize_page(page, per_page)
        documents = await self.documents.list(per_page, offset)
        total = await self.documents.count()
        return documents or [], total

    async def update_status(self, external_id: uuid.UUID, status: str | DocumentStatus) -> Document:
        """Apply a status reported from outside the ingestion pipeline.

        Transitions are not checked here; only the value itself is validated.
        """
        new_status = DocumentStatus.parse(status)
        document = await self.get_document(external_id)
        document.update_status(new_status)
        await self.documents.update(document)
        return document

    async def update_categories(self, external_id: uuid.UUID, categories: Optional[List[str]]) -> Document:
        document = await self.get_document(external_id)
        document.update_categories(categories)
        await self.documents.update(document)
        return document

    async def delete_document(self, external_id: uuid.UUID) -> None:
        document = await self.get_document(external_id)
        await self.documents.delete(document.id)
        logger.info("Document %s deleted", external_id)


__all__ = ["DocumentDispatcher", "DocumentService", "normalize_page"]
