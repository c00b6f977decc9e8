from __future__ import annotations

import uuid

from fastapi import Depends

from finance_assistant.core.database import database_manager
from finance_assistant.core.exceptions import ApplicationError, ErrorKind
from finance_assistant.orchestration.publisher import KafkaDocumentProducer, document_producer
from finance_assistant.services import DocumentService, UserService
from finance_assistant.services.document_service import DEFAULT_PAGE_SIZE
from finance_assistant.storage import (
    DocumentRepository,
    MongoDocumentRepository,
    MongoUserRepository,
    UserRepository,
)

MAX_PAGE_SIZE = 100


def get_producer() -> KafkaDocumentProducer:
    return document_producer


def get_document_repository() -> DocumentRepository:
    return MongoDocumentRepository(lambda: database_manager.database)


def get_user_repository() -> UserRepository:
    return MongoUserRepository(lambda: database_manager.database)


def get_document_service(
    documents: DocumentRepository = Depends(get_document_repository),
    users: UserRepository = Depends(get_user_repository),
    producer: KafkaDocumentProducer = Depends(get_producer),
) -> DocumentService:
    return DocumentService(documents, users, producer)


def get_user_service(users: UserRepository = Depends(get_user_repository)) -> UserService:
    return UserService(users)


def parse_external_id(value: str, label: str = "id") -> uuid.UUID:
    """Parse a path identifier, mapping malformed input to `invalid_input`."""
    try:
        return uuid.UUID(value)
    except (TypeError, ValueError) as exc:
        raise ApplicationError(f"Invalid {label}", kind=ErrorKind.INVALID_INPUT, code="invalid_id") from exc


def clamp_limit(limit: int, maximum: int = MAX_PAGE_SIZE) -> int:
    if limit < 1 or limit > maximum:
        return DEFAULT_PAGE_SIZE
    return limit
