"""Document data model definitions."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from finance_assistant.core.exceptions import (
    InvalidContentError,
    InvalidFilenameError,
    InvalidOwnerError,
    InvalidStatusError,
    InvalidTypeError,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Processing status of an uploaded document."""

    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: str | "DocumentStatus") -> "DocumentStatus":
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidStatusError(value) from exc


class Document(BaseModel):
    """A financial document uploaded by a user.

    Identity, ownership, content and `created_at` are frozen once the model is
    built; only `status` and `categories` change, and both bump `updated_at`.
    `id` is the store's sequential key and is filled in by the store on create.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[int] = None
    external_id: uuid.UUID = Field(default_factory=uuid.uuid4, frozen=True)
    user_id: int = Field(..., frozen=True)
    document_type: str = Field(..., frozen=True)
    filename: str = Field(..., frozen=True)
    content_type: str = Field("application/octet-stream", frozen=True)
    file_content: str = Field(..., frozen=True, description="Base64-encoded file bytes")
    categories: List[str] = Field(default_factory=list)
    status: DocumentStatus = DocumentStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow, frozen=True)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("categories", mode="before")
    @classmethod
    def _default_categories(cls, value: Optional[List[str]]) -> List[str]:
        return [] if value is None else value

    @classmethod
    def new(
        cls,
        user_id: int,
        document_type: str,
        filename: str,
        content_type: str,
        file_content: str,
        categories: Optional[List[str]] = None,
    ) -> "Document":
        """Build a fresh `pending` document, rejecting invalid input."""
        _check_fields(user_id, document_type, filename, file_content)
        now = utcnow()
        return cls(
            user_id=user_id,
            document_type=document_type,
            filename=filename,
            content_type=content_type,
            file_content=file_content,
            categories=categories,
            status=DocumentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    def validate_fields(self) -> None:
        _check_fields(self.user_id, self.document_type, self.filename, self.file_content)

    def update_status(self, status: DocumentStatus) -> None:
        self.status = status
        self.updated_at = utcnow()

    def update_categories(self, categories: Optional[List[str]]) -> None:
        self.categories = categories
        self.updated_at = utcnow()

    @property
    def file_size(self) -> int:
        """Approximate decoded size in bytes of the base64 content."""
        return len(self.file_content) * 3 // 4


def _check_fields(user_id: int, document_type: str, filename: str, file_content: str) -> None:
    if user_id is None or user_id <= 0:
        raise InvalidOwnerError()
    if not document_type:
        raise InvalidTypeError()
    if not filename:
        raise InvalidFilenameError()
    if not file_content:
        raise InvalidContentError()


__all__ = ["Document", "DocumentStatus", "utcnow"]
