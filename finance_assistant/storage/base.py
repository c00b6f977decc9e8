"""Storage contracts consumed by the document and user services.

Lookups return ``None`` when nothing matches; any other failure raises.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from finance_assistant.models import Document, DocumentStatus, User


class DocumentRepository:
    """Durable storage for documents."""

    async def create(self, document: Document) -> Document:
        """Insert `document` and assign its sequential `id`."""
        raise NotImplementedError

    async def find_by_id(self, document_id: int) -> Optional[Document]:
        raise NotImplementedError

    async def find_by_external_id(self, external_id: uuid.UUID) -> Optional[Document]:
        raise NotImplementedError

    async def find_by_owner(self, user_id: int, limit: int, offset: int) -> List[Document]:
        raise NotImplementedError

    async def update(self, document: Document) -> None:
        raise NotImplementedError

    async def update_status(self, document_id: int, status: DocumentStatus) -> None:
        raise NotImplementedError

    async def delete(self, document_id: int) -> None:
        raise NotImplementedError

    async def list(self, limit: int, offset: int) -> List[Document]:
        raise NotImplementedError

    async def count_by_owner(self, user_id: int) -> int:
        raise NotImplementedError

    async def count(self) -> int:
        raise NotImplementedError


class UserRepository:
    """Durable storage for users."""

    async def create(self, user: User) -> User:
        raise NotImplementedError

    async def find_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    async def find_by_external_id(self, external_id: uuid.UUID) -> Optional[User]:
        raise NotImplementedError

    async def find_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    async def update(self, user: User) -> None:
        raise NotImplementedError

    async def delete(self, user_id: int) -> None:
        raise NotImplementedError

    async def list(self, limit: int, offset: int) -> List[User]:
        raise NotImplementedError

    async def count(self) -> int:
        raise NotImplementedError


__all__ = ["DocumentRepository", "UserRepository"]
