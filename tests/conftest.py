import asyncio
import uuid
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from finance_assistant.core.exceptions import DispatchError, DispatchFailure
from finance_assistant.models import Document, DocumentStatus, User
from finance_assistant.storage.base import DocumentRepository, UserRepository


class InMemoryDocumentRepository(DocumentRepository):
    def __init__(self) -> None:
        self.rows: Dict[int, Document] = {}
        self.calls: List[str] = []
        self.create_error: Optional[Exception] = None
        self.update_status_error: Optional[Exception] = None
        self._seq = 0

    async def create(self, document):
        self.calls.append("create")
        if self.create_error:
            raise self.create_error
        document.validate_fields()
        self._seq += 1
        document.id = self._seq
        self.rows[document.id] = document.model_copy(deep=True)
        return document

    async def find_by_id(self, document_id):
        row = self.rows.get(document_id)
        return row.model_copy(deep=True) if row else None

    async def find_by_external_id(self, external_id):
        for row in self.rows.values():
            if row.external_id == external_id:
                return row.model_copy(deep=True)
        return None

    async def find_by_owner(self, user_id, limit, offset):
        owned = [row for row in self.rows.values() if row.user_id == user_id]
        owned.sort(key=lambda row: row.created_at, reverse=True)
        return [row.model_copy(deep=True) for row in owned[offset : offset + limit]]

    async def update(self, document):
        self.calls.append("update")
        self.rows[document.id] = document.model_copy(deep=True)

    async def update_status(self, document_id, status):
        self.calls.append(f"update_status:{status.value}")
        if self.update_status_error:
            raise self.update_status_error
        self.rows[document_id].update_status(status)

    async def delete(self, document_id):
        self.calls.append("delete")
        self.rows.pop(document_id, None)

    async def list(self, limit, offset):
        rows = sorted(self.rows.values(), key=lambda row: row.created_at, reverse=True)
        return [row.model_copy(deep=True) for row in rows[offset : offset + limit]]

    async def count_by_owner(self, user_id):
        return sum(1 for row in self.rows.values() if row.user_id == user_id)

    async def count(self):
        return len(self.rows)


class InMemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self.rows: Dict[int, User] = {}
        self.lookup_error: Optional[Exception] = None
        self._seq = 0

    def add(self, user: User) -> User:
        self._seq += 1
        user.id = self._seq
        self.rows[user.id] = user
        return user

    async def create(self, user):
        return self.add(user)

    async def find_by_id(self, user_id):
        return self.rows.get(user_id)

    async def find_by_external_id(self, external_id):
        if self.lookup_error:
            raise self.lookup_error
        return next((u for u in self.rows.values() if u.external_id == external_id), None)

    async def find_by_email(self, email):
        if self.lookup_error:
            raise self.lookup_error
        return next((u for u in self.rows.values() if u.email == email), None)

    async def update(self, user):
        self.rows[user.id] = user

    async def delete(self, user_id):
        self.rows.pop(user_id, None)

    async def list(self, limit, offset):
        return list(self.rows.values())[offset : offset + limit]

    async def count(self):
        return len(self.rows)


class RecordingDispatcher:
    """Stands in for the Kafka producer; records what was stored at send time."""

    def __init__(self, repository: InMemoryDocumentRepository, failure: Optional[DispatchFailure] = None) -> None:
        self.repository = repository
        self.failure = failure
        self.sent: List[Document] = []
        self.rows_at_send: List[int] = []

    async def send_document(self, document):
        self.repository.calls.append("send")
        self.rows_at_send.append(len(self.repository.rows))
        self.sent.append(document)
        if self.failure is not None:
            raise DispatchError(self.failure, "stubbed failure", document_id=str(document.external_id))
        return SimpleNamespace(topic="documents", partition=0, offset=len(self.sent) - 1)


class StubClusterClient:
    def __init__(self, brokers=1, error: Optional[Exception] = None, hang: bool = False) -> None:
        self.brokers = brokers
        self.error = error
        self.hang = hang

    async def fetch_all_metadata(self):
        if self.hang:
            await asyncio.sleep(3600)
        if self.error:
            raise self.error
        return SimpleNamespace(brokers=lambda: set(range(self.brokers)))


class StubKafkaClient:
    """Minimal stand-in for `AIOKafkaProducer`."""

    def __init__(
        self,
        *,
        start_error: Optional[Exception] = None,
        hang_start: bool = False,
        send_error: Optional[Exception] = None,
        delivery_error: Optional[Exception] = None,
        acknowledge: bool = True,
        hang_flush: bool = False,
        cluster: Optional[StubClusterClient] = None,
    ) -> None:
        self.start_error = start_error
        self.hang_start = hang_start
        self.start_calls = 0
        self.send_error = send_error
        self.delivery_error = delivery_error
        self.acknowledge = acknowledge
        self.hang_flush = hang_flush
        self.client = cluster or StubClusterClient()
        self.started = False
        self.stopped = False
        self.flushed = False
        self.sent = []
        self.futures = []

    async def start(self):
        self.start_calls += 1
        if self.hang_start:
            await asyncio.sleep(3600)
        if self.start_error:
            raise self.start_error
        self.started = True

    async def send(self, topic, value=None, key=None, headers=None):
        if self.send_error:
            raise self.send_error
        self.sent.append(SimpleNamespace(topic=topic, value=value, key=key, headers=headers))
        future = asyncio.get_running_loop().create_future()
        if self.delivery_error is not None:
            future.set_exception(self.delivery_error)
        elif self.acknowledge:
            future.set_result(SimpleNamespace(topic=topic, partition=0, offset=len(self.sent) - 1))
        self.futures.append(future)
        return future

    async def flush(self):
        if self.hang_flush:
            await asyncio.sleep(3600)
        for offset, future in enumerate(self.futures):
            if not future.done():
                future.set_result(SimpleNamespace(topic=self.sent[offset].topic, partition=0, offset=offset))
        self.flushed = True

    async def stop(self):
        self.stopped = True


@pytest.fixture
def document_repo():
    return InMemoryDocumentRepository()


@pytest.fixture
def user_repo():
    return InMemoryUserRepository()


@pytest.fixture
def owner(user_repo):
    return user_repo.add(User.new("Ana Souza", "ana@example.com", "11 98765-4321"))


@pytest.fixture
def unknown_handle():
    return uuid.uuid4()


def make_document(**overrides) -> Document:
    fields = {
        "user_id": 1,
        "document_type": "bank_statement",
        "filename": "statement-january.pdf",
        "content_type": "application/pdf",
        "file_content": "JVBERi0xLjQK",
        "categories": ["bank", "monthly"],
    }
    fields.update(overrides)
    return Document.new(**fields)


__all__ = [
    "DocumentStatus",
    "InMemoryDocumentRepository",
    "InMemoryUserRepository",
    "RecordingDispatcher",
    "StubClusterClient",
    "StubKafkaClient",
    "make_document",
]
