"""Wire format for documents published to Kafka."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from finance_assistant.models.document import Document


class DocumentMessage(BaseModel):
    """Message body consumed by the downstream document analyzer.

    Identifiers travel as strings so that consumers in any language can read
    them without integer-width concerns.
    """

    id: str
    external_id: str
    user_id: str
    document_type: str
    filename: str
    content_type: str
    file_content: str
    categories: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentMessage":
        return cls(
            id=str(document.id),
            external_id=str(document.external_id),
            user_id=str(document.user_id),
            document_type=document.document_type,
            filename=document.filename,
            content_type=document.content_type,
            file_content=document.file_content,
            categories=list(document.categories),
            created_at=document.created_at,
            updated_at=document.updated_at,
        )

    def encode(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def decode(cls, payload: bytes) -> "DocumentMessage":
        return cls.model_validate_json(payload)


__all__ = ["DocumentMessage"]
