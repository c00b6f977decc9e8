from .base import DocumentRepository, UserRepository
from .documents import MongoDocumentRepository
from .users import MongoUserRepository

__all__ = [
    "DocumentRepository",
    "MongoDocumentRepository",
    "MongoUserRepository",
    "UserRepository",
]
