"""Custom exception hierarchy for the Finance Assistant service."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from fastapi import status


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to callers."""

    OWNER_NOT_FOUND = "owner_not_found"
    DOCUMENT_NOT_FOUND = "document_not_found"
    INVALID_INPUT = "invalid_input"
    DISPATCH_FAILED = "dispatch_failed"
    INTERNAL_ERROR = "internal_error"
    CONFLICT = "conflict"


_STATUS_BY_KIND = {
    ErrorKind.OWNER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.DOCUMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DISPATCH_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
}


class ApplicationError(Exception):
    """Base application error carrying an `ErrorKind` and HTTP semantics."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    code: str = "internal_error"

    def __init__(self, message: str, *, kind: ErrorKind | None = None, code: str | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        if code is not None:
            self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self.kind]


# Validation


class InvalidDocumentError(ApplicationError):
    kind = ErrorKind.INVALID_INPUT
    code = "invalid_document"


class InvalidOwnerError(InvalidDocumentError):
    code = "invalid_owner"

    def __init__(self, message: str = "Invalid owner user id") -> None:
        super().__init__(message)


class InvalidTypeError(InvalidDocumentError):
    code = "invalid_document_type"

    def __init__(self, message: str = "Invalid document type") -> None:
        super().__init__(message)


class InvalidFilenameError(InvalidDocumentError):
    code = "invalid_filename"

    def __init__(self, message: str = "Invalid filename") -> None:
        super().__init__(message)


class InvalidContentError(InvalidDocumentError):
    code = "invalid_content"

    def __init__(self, message: str = "Invalid document content") -> None:
        super().__init__(message)


class InvalidStatusError(InvalidDocumentError):
    code = "invalid_status"

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid document status: {value!r}")
        self.value = value


class InvalidUserError(ApplicationError):
    kind = ErrorKind.INVALID_INPUT
    code = "invalid_user"


class InvalidUserNameError(InvalidUserError):
    code = "invalid_user_name"

    def __init__(self, message: str = "Invalid user name") -> None:
        super().__init__(message)


class InvalidUserEmailError(InvalidUserError):
    code = "invalid_user_email"

    def __init__(self, message: str = "Invalid user email") -> None:
        super().__init__(message)


# Not found


class UserNotFoundError(ApplicationError):
    kind = ErrorKind.OWNER_NOT_FOUND
    code = "user_not_found"

    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message)


class OwnerNotFoundError(UserNotFoundError):
    """The user a document is being submitted for does not exist."""

    code = "owner_not_found"

    def __init__(self, message: str = "User not found for this document") -> None:
        super().__init__(message)


class DocumentNotFoundError(ApplicationError):
    kind = ErrorKind.DOCUMENT_NOT_FOUND
    code = "document_not_found"

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


# Conflicts


class EmailAlreadyUsedError(ApplicationError):
    kind = ErrorKind.CONFLICT
    code = "email_already_used"

    def __init__(self, message: str = "Email is already in use") -> None:
        super().__init__(message)


# Persistence and dispatch


class PersistenceError(ApplicationError):
    """Raised when the document store rejects a write."""

    kind = ErrorKind.INTERNAL_ERROR
    code = "persistence_failed"


class DispatchFailure(str, Enum):
    SERIALIZATION = "serialization"
    REJECTED = "rejected"
    DELIVERY = "delivery"
    TIMEOUT = "timeout"


class DispatchError(ApplicationError):
    """Raised when a document could not be handed to the broker."""

    kind = ErrorKind.DISPATCH_FAILED
    code = "dispatch_failed"

    def __init__(self, reason: DispatchFailure, message: str, *, document_id: Optional[str] = None) -> None:
        super().__init__(f"[{reason.value}] {message}")
        self.reason = reason
        self.document_id = document_id


__all__ = [
    "ApplicationError",
    "DispatchError",
    "DispatchFailure",
    "DocumentNotFoundError",
    "EmailAlreadyUsedError",
    "ErrorKind",
    "InvalidContentError",
    "InvalidDocumentError",
    "InvalidFilenameError",
    "InvalidOwnerError",
    "InvalidStatusError",
    "InvalidTypeError",
    "InvalidUserEmailError",
    "InvalidUserError",
    "InvalidUserNameError",
    "OwnerNotFoundError",
    "PersistenceError",
    "UserNotFoundError",
]
