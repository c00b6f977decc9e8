"""FastAPI routes for document upload and lifecycle tracking."""

from __future__ import annotations

import base64
import binascii
import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from pydantic import BaseModel, Field

from finance_assistant.api.dependencies import clamp_limit, get_document_service, parse_external_id
from finance_assistant.core.config import settings
from finance_assistant.core.exceptions import ApplicationError, ErrorKind
from finance_assistant.models import Document, DocumentStatus
from finance_assistant.services import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["documents"])

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/msword",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.ms-excel",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


# Response Models


class DocumentResponse(BaseModel):
    """Document summary; the file content is omitted."""

    id: str = Field(..., description="External document id")
    document_type: str
    filename: str
    content_type: str
    file_size: int = Field(..., description="Approximate file size in bytes")
    categories: List[str] = Field(default_factory=list)
    status: DocumentStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResponse":
        return cls(
            id=str(document.external_id),
            document_type=document.document_type,
            filename=document.filename,
            content_type=document.content_type,
            file_size=document.file_size,
            categories=document.categories,
            status=document.status,
            created_at=document.created_at,
            updated_at=document.updated_at,
        )


class DocumentDetailResponse(DocumentResponse):
    file_content: str = Field(..., description="Base64-encoded file content")

    @classmethod
    def from_document(cls, document: Document) -> "DocumentDetailResponse":
        summary = DocumentResponse.from_document(document)
        return cls(**summary.model_dump(), file_content=document.file_content)


class DocumentListResponse(BaseModel):
    documents: List[DocumentResponse]
    total: int
    page: int
    limit: int


class DocumentStatusUpdateRequest(BaseModel):
    status: str = Field(..., description="pending, processing, processed or failed")


class DocumentCategoriesUpdateRequest(BaseModel):
    categories: List[str] = Field(default_factory=list)


def _invalid(message: str, code: str = "invalid_upload") -> ApplicationError:
    return ApplicationError(message, kind=ErrorKind.INVALID_INPUT, code=code)


def _normalize_categories(*groups: Optional[List[str]]) -> List[str]:
    """Merge `categories` and `categories[]` form values, splitting comma lists."""
    categories: List[str] = []
    for group in groups:
        for value in group or []:
            categories.extend(item.strip() for item in value.split(",") if item.strip())
    return categories


# Endpoints


@router.post("/users/{user_id}/documents", response_model=DocumentResponse, status_code=201)
async def upload_document(
    user_id: str,
    document_type: str = Form(""),
    categories: Optional[List[str]] = Form(None),
    categories_brackets: Optional[List[str]] = Form(None, alias="categories[]"),
    file: Optional[UploadFile] = File(None),
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    """
    Upload a financial document for a user and send it for analysis.

    The document is stored as `pending` before it is published to Kafka. The
    response reflects the status reached: `processing` once the broker has
    acknowledged the message. If the broker cannot be reached the request
    fails with `dispatch_failed` and the stored document is marked `failed`.
    """
    owner = parse_external_id(user_id, "user id")

    if not document_type:
        raise _invalid("document_type is required", code="invalid_document_type")
    if file is None or not file.filename:
        raise _invalid("file is missing or invalid")

    extension = os.path.splitext(file.filename)[1].lower()
    if extension not in settings.ALLOWED_EXTENSIONS:
        allowed = ", ".join(ext.lstrip(".").upper() for ext in settings.ALLOWED_EXTENSIONS)
        raise _invalid(f"Unsupported file type; allowed types: {allowed}", code="unsupported_file_type")

    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE:
        limit_mb = settings.MAX_UPLOAD_SIZE // (1024 * 1024)
        raise _invalid(f"File too large; maximum allowed size is {limit_mb}MB", code="file_too_large")
    if not content:
        raise _invalid("File is empty", code="invalid_content")

    content_type = CONTENT_TYPES.get(extension, "application/octet-stream")
    logger.info("Processing upload %s (%d bytes, %s)", file.filename, len(content), content_type)

    document = await service.submit_document(
        owner,
        document_type,
        file.filename,
        content_type,
        base64.b64encode(content).decode("ascii"),
        _normalize_categories(categories, categories_brackets),
    )
    return DocumentResponse.from_document(document)


@router.get("/users/{user_id}/documents", response_model=DocumentListResponse)
async def list_user_documents(
    user_id: str,
    page: int = 1,
    limit: int = 10,
    service: DocumentService = Depends(get_document_service),
) -> DocumentListResponse:
    page = max(page, 1)
    limit = clamp_limit(limit)
    documents, total = await service.list_user_documents(parse_external_id(user_id, "user id"), page, limit)
    return DocumentListResponse(
        documents=[DocumentResponse.from_document(doc) for doc in documents],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    page: int = 1,
    limit: int = 10,
    service: DocumentService = Depends(get_document_service),
) -> DocumentListResponse:
    page = max(page, 1)
    limit = clamp_limit(limit)
    documents, total = await service.list_documents(page, limit)
    return DocumentListResponse(
        documents=[DocumentResponse.from_document(doc) for doc in documents],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/documents/{document_id}")
async def get_document(
    document_id: str,
    detailed: bool = False,
    service: DocumentService = Depends(get_document_service),
):
    """Return a document; `detailed=true` includes the base64 file content."""
    document = await service.get_document(parse_external_id(document_id, "document id"))
    if detailed:
        return DocumentDetailResponse.from_document(document)
    return DocumentResponse.from_document(document)


@router.get("/documents/{document_id}/download")
async def download_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> Response:
    document = await service.get_document(parse_external_id(document_id, "document id"))
    try:
        content = base64.b64decode(document.file_content, validate=True)
    except (binascii.Error, ValueError) as exc:
        logger.error("Stored content for document %s is not valid base64: %s", document.external_id, exc)
        raise ApplicationError("Could not decode document content", code="corrupt_content") from exc

    return Response(
        content=content,
        media_type=document.content_type,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )


@router.put("/documents/{document_id}/status", response_model=DocumentResponse)
async def update_document_status(
    document_id: str,
    request: DocumentStatusUpdateRequest,
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    document = await service.update_status(parse_external_id(document_id, "document id"), request.status)
    return DocumentResponse.from_document(document)


@router.put("/documents/{document_id}/categories", response_model=DocumentResponse)
async def update_document_categories(
    document_id: str,
    request: DocumentCategoriesUpdateRequest,
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    document = await service.update_categories(parse_external_id(document_id, "document id"), request.categories)
    return DocumentResponse.from_document(document)


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> Response:
    await service.delete_document(parse_external_id(document_id, "document id"))
    return Response(status_code=204)
