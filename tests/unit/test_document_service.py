import uuid
from datetime import datetime, timedelta, timezone

import pytest
from aiokafka.errors import KafkaConnectionError

from finance_assistant.core.exceptions import (
    DispatchError,
    DispatchFailure,
    DocumentNotFoundError,
    InvalidStatusError,
    InvalidTypeError,
    OwnerNotFoundError,
    PersistenceError,
)
from finance_assistant.models import Document, DocumentMessage, DocumentStatus
from finance_assistant.orchestration.publisher import KafkaDocumentProducer
from finance_assistant.services import DocumentService
from finance_assistant.services.document_service import normalize_page
from tests.conftest import RecordingDispatcher, StubKafkaClient

BASE_TIME = datetime(2024, 3, 1, tzinfo=timezone.utc)


def build_service(document_repo, user_repo, failure=None):
    dispatcher = RecordingDispatcher(document_repo, failure)
    return DocumentService(document_repo, user_repo, dispatcher), dispatcher


async def submit(service, owner, **overrides):
    fields = {
        "document_type": "invoice",
        "filename": "invoice-0042.pdf",
        "content_type": "application/pdf",
        "file_content": "JVBERi0xLjcK",
        "categories": ["utilities"],
    }
    fields.update(overrides)
    return await service.submit_document(owner.external_id, **fields)


async def seed(document_repo, owner, count):
    for index in range(count):
        await document_repo.create(
            Document(
                user_id=owner.id,
                document_type="receipt",
                filename=f"receipt-{index}.png",
                content_type="image/png",
                file_content="iVBORw0KGgo=",
                created_at=BASE_TIME + timedelta(minutes=index),
                updated_at=BASE_TIME + timedelta(minutes=index),
            )
        )


@pytest.mark.asyncio
async def test_successful_submission_ends_processing(document_repo, user_repo, owner):
    service, dispatcher = build_service(document_repo, user_repo)

    document = await submit(service, owner)

    assert document.status == DocumentStatus.PROCESSING
    assert document.id == 1
    assert document.user_id == owner.id
    assert document_repo.calls == ["create", "send", "update_status:processing"]
    assert dispatcher.rows_at_send == [1]
    assert document_repo.rows[1].status == DocumentStatus.PROCESSING


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", list(DispatchFailure))
async def test_dispatch_failure_marks_document_failed(document_repo, user_repo, owner, failure):
    service, _ = build_service(document_repo, user_repo, failure)

    with pytest.raises(DispatchError) as excinfo:
        await submit(service, owner)

    assert excinfo.value.reason == failure
    assert len(document_repo.rows) == 1
    assert document_repo.rows[1].status == DocumentStatus.FAILED


@pytest.mark.asyncio
async def test_failed_reconcile_after_dispatch_error_leaves_row_pending(document_repo, user_repo, owner):
    service, _ = build_service(document_repo, user_repo, DispatchFailure.TIMEOUT)
    document_repo.update_status_error = RuntimeError("mongo went away")

    with pytest.raises(DispatchError):
        await submit(service, owner)

    assert document_repo.rows[1].status == DocumentStatus.PENDING


@pytest.mark.asyncio
async def test_failed_reconcile_after_delivery_still_succeeds(document_repo, user_repo, owner):
    service, dispatcher = build_service(document_repo, user_repo)
    document_repo.update_status_error = RuntimeError("mongo went away")

    document = await submit(service, owner)

    assert document.status == DocumentStatus.PROCESSING
    assert len(dispatcher.sent) == 1
    assert document_repo.rows[1].status == DocumentStatus.PENDING


@pytest.mark.asyncio
async def test_persistence_failure_skips_dispatch(document_repo, user_repo, owner):
    service, dispatcher = build_service(document_repo, user_repo)
    document_repo.create_error = RuntimeError("disk full")

    with pytest.raises(PersistenceError) as excinfo:
        await submit(service, owner)

    assert excinfo.value.kind.value == "internal_error"
    assert excinfo.value.message == "Failed to store document"
    assert "disk full" in str(excinfo.value.__cause__)
    assert dispatcher.sent == []
    assert document_repo.rows == {}


@pytest.mark.asyncio
async def test_unknown_owner_writes_nothing(document_repo, user_repo, unknown_handle):
    service, dispatcher = build_service(document_repo, user_repo)

    with pytest.raises(OwnerNotFoundError):
        await service.submit_document(unknown_handle, "invoice", "a.pdf", "application/pdf", "AAAA")

    assert document_repo.calls == []
    assert dispatcher.sent == []


@pytest.mark.asyncio
async def test_owner_lookup_error_propagates(document_repo, user_repo, owner):
    service, _ = build_service(document_repo, user_repo)
    user_repo.lookup_error = RuntimeError("connection reset")

    with pytest.raises(RuntimeError):
        await submit(service, owner)

    assert document_repo.calls == []


@pytest.mark.asyncio
async def test_invalid_input_writes_nothing(document_repo, user_repo, owner):
    service, dispatcher = build_service(document_repo, user_repo)

    with pytest.raises(InvalidTypeError):
        await submit(service, owner, document_type="")

    assert document_repo.rows == {}
    assert dispatcher.sent == []


@pytest.mark.asyncio
async def test_submission_through_kafka_producer(document_repo, user_repo, owner):
    client = StubKafkaClient()
    producer = KafkaDocumentProducer(topic="documents", client_factory=lambda: client)
    service = DocumentService(document_repo, user_repo, producer)

    document = await submit(service, owner)

    message = DocumentMessage.decode(client.sent[0].value)
    assert message.external_id == str(document.external_id)
    assert message.user_id == str(owner.id)
    assert message.file_content == "JVBERi0xLjcK"
    assert document_repo.rows[document.id].status == DocumentStatus.PROCESSING
    await producer.close()


@pytest.mark.asyncio
async def test_submission_with_broker_down(document_repo, user_repo, owner):
    client = StubKafkaClient(start_error=KafkaConnectionError("no brokers"))
    producer = KafkaDocumentProducer(topic="documents", client_factory=lambda: client)
    service = DocumentService(document_repo, user_repo, producer)

    with pytest.raises(DispatchError) as excinfo:
        await submit(service, owner)

    assert excinfo.value.reason == DispatchFailure.REJECTED
    assert document_repo.rows[1].status == DocumentStatus.FAILED
    await producer.close()


@pytest.mark.asyncio
async def test_get_document_is_repeatable(document_repo, user_repo, owner):
    service, _ = build_service(document_repo, user_repo)
    created = await submit(service, owner)

    first = await service.get_document(created.external_id)
    second = await service.get_document(created.external_id)

    assert first == second
    assert first.status == DocumentStatus.PROCESSING


@pytest.mark.asyncio
async def test_get_unknown_document(document_repo, user_repo):
    service, _ = build_service(document_repo, user_repo)

    with pytest.raises(DocumentNotFoundError):
        await service.get_document(uuid.uuid4())


@pytest.mark.asyncio
async def test_list_user_documents_newest_first(document_repo, user_repo, owner):
    service, _ = build_service(document_repo, user_repo)
    await seed(document_repo, owner, 3)

    documents, total = await service.list_user_documents(owner.external_id, page=1, per_page=2)

    assert total == 3
    assert [doc.filename for doc in documents] == ["receipt-2.png", "receipt-1.png"]


@pytest.mark.asyncio
async def test_list_user_documents_for_unknown_owner(document_repo, user_repo, unknown_handle):
    service, _ = build_service(document_repo, user_repo)

    with pytest.raises(OwnerNotFoundError):
        await service.list_user_documents(unknown_handle)


@pytest.mark.asyncio
async def test_list_documents_second_page(document_repo, user_repo, owner):
    service, _ = build_service(document_repo, user_repo)
    await seed(document_repo, owner, 3)

    documents, total = await service.list_documents(page=2, per_page=2)

    assert total == 3
    assert [doc.filename for doc in documents] == ["receipt-0.png"]


@pytest.mark.asyncio
async def test_update_status_applies_reported_value(document_repo, user_repo, owner):
    service, _ = build_service(document_repo, user_repo)
    created = await submit(service, owner)

    updated = await service.update_status(created.external_id, "processed")

    assert updated.status == DocumentStatus.PROCESSED
    assert document_repo.rows[created.id].status == DocumentStatus.PROCESSED


@pytest.mark.asyncio
async def test_update_status_rejects_unknown_value(document_repo, user_repo, owner):
    service, _ = build_service(document_repo, user_repo)
    created = await submit(service, owner)

    with pytest.raises(InvalidStatusError):
        await service.update_status(created.external_id, "archived")

    assert document_repo.rows[created.id].status == DocumentStatus.PROCESSING


@pytest.mark.asyncio
async def test_update_categories(document_repo, user_repo, owner):
    service, _ = build_service(document_repo, user_repo)
    created = await submit(service, owner)

    updated = await service.update_categories(created.external_id, ["tax", "2024"])

    assert document_repo.rows[created.id].categories == ["tax", "2024"]
    assert updated.created_at == created.created_at


@pytest.mark.asyncio
async def test_delete_document(document_repo, user_repo, owner):
    service, _ = build_service(document_repo, user_repo)
    created = await submit(service, owner)

    await service.delete_document(created.external_id)

    with pytest.raises(DocumentNotFoundError):
        await service.get_document(created.external_id)


def test_normalize_page():
    assert normalize_page(0, 0) == (1, 10, 0)
    assert normalize_page(3, 25) == (3, 25, 50)
