from .document import Document, DocumentStatus
from .messages import DocumentMessage
from .user import User

__all__ = [
    "Document",
    "DocumentMessage",
    "DocumentStatus",
    "User",
]
