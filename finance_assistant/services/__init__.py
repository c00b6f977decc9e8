from .document_service import DocumentService
from .user_service import UserService

__all__ = ["DocumentService", "UserService"]
