"""Kafka producer that hands uploaded documents to the analysis pipeline."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Set, Tuple

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
from aiokafka.structs import RecordMetadata
from opentelemetry import trace

from finance_assistant.core.config import settings
from finance_assistant.core.exceptions import DispatchError, DispatchFailure
from finance_assistant.models import Document, DocumentMessage
from finance_assistant.utils.monitoring import observe_dispatch

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DELIVERY_TIMEOUT_SECONDS = 5.0
METADATA_TIMEOUT_SECONDS = 5.0
FLUSH_TIMEOUT_SECONDS = 5.0

CONTENT_TYPE_HEADER = ("content_type", b"application/json")
SOURCE_HEADER = ("source", b"finance-assistant")


@dataclass(frozen=True)
class DeliveryReport:
    external_id: str
    topic: str
    partition: int
    offset: int


@dataclass(frozen=True)
class DeliveryEvent:
    external_id: str
    metadata: Optional[RecordMetadata] = None
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class BrokerHealth:
    reachable: bool
    brokers: int = 0
    error: Optional[str] = None


def _build_client() -> AIOKafkaProducer:
    return AIOKafkaProducer(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        client_id=settings.KAFKA_CLIENT_ID,
        acks="all",
        request_timeout_ms=settings.KAFKA_REQUEST_TIMEOUT_MS,
        max_request_size=settings.KAFKA_MAX_REQUEST_SIZE,
        compression_type=settings.KAFKA_COMPRESSION_TYPE,
        retry_backoff_ms=settings.KAFKA_RETRY_BACKOFF_MS,
    )


class KafkaDocumentProducer:
    """Publishes documents to a single topic and waits for the broker's ack.

    One instance is shared by every request. Delivery outcomes are also pushed
    onto an internal queue drained by a listener task that lives from
    `start()` until `close()`, so late acknowledgements are still logged after
    a caller has given up waiting.
    """

    def __init__(
        self,
        *,
        topic: Optional[str] = None,
        client_factory: Optional[Callable[[], AIOKafkaProducer]] = None,
        delivery_timeout: float = DELIVERY_TIMEOUT_SECONDS,
    ) -> None:
        self.topic = topic or settings.KAFKA_TOPIC_DOCUMENTS
        self._client_factory = client_factory or _build_client
        self._delivery_timeout = delivery_timeout
        self._client: Optional[AIOKafkaProducer] = None
        self._connecting: Optional[asyncio.Task] = None
        self._stopping: Set[asyncio.Task] = set()
        self._events: asyncio.Queue[DeliveryEvent] = asyncio.Queue()
        self._listener: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Future] = set()
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._client is not None

    @property
    def pending(self) -> int:
        return len(self._in_flight)

    async def start(self) -> None:
        self._closed = False
        if self._listener is None or self._listener.done():
            self._listener = asyncio.create_task(self._drain_delivery_events())

        if await self._ensure_client() is None:
            logger.warning("Kafka unavailable at startup; documents will be stored and marked failed until it recovers.")

    async def _ensure_client(self) -> Optional[AIOKafkaProducer]:
        """Return the connected client, joining any connect attempt in progress.

        Concurrent callers share a single attempt; the attempt itself is
        shielded so a caller giving up early does not cancel it for the rest.
        """
        if self._client is not None:
            return self._client
        if self._closed:
            return None

        if self._connecting is None or self._connecting.done():
            self._connecting = asyncio.create_task(self._connect())
        return await asyncio.shield(self._connecting)

    async def _connect(self) -> Optional[AIOKafkaProducer]:
        client = self._client_factory()
        try:
            await asyncio.wait_for(client.start(), timeout=self._delivery_timeout)
        except (KafkaError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("Kafka producer unavailable: %s", str(exc) or exc.__class__.__name__)
            self._discard_later(client)
            return None
        except asyncio.CancelledError:
            self._discard_later(client)
            raise

        if self._closed:
            self._discard_later(client)
            return None

        self._client = client
        logger.info(
            "Kafka producer connected to %s (topic %s)",
            ",".join(settings.KAFKA_BOOTSTRAP_SERVERS),
            self.topic,
        )
        return client

    async def send_document(self, document: Document) -> DeliveryReport:
        """Publish `document` and wait up to the delivery timeout for the ack.

        Raises `DispatchError` tagged with the failure reason. Nothing is
        retried here and the document's status is left untouched.
        """

        external_id = str(document.external_id)
        started = time.perf_counter()
        with tracer.start_as_current_span("kafka.publish") as span:
            span.set_attribute("messaging.system", "kafka")
            span.set_attribute("messaging.destination", self.topic)
            span.set_attribute("document.external_id", external_id)
            try:
                report = await self._send(document, external_id, span)
            except DispatchError as exc:
                span.record_exception(exc)
                span.set_attribute("dispatch.failure", exc.reason.value)
                observe_dispatch(exc.reason.value, time.perf_counter() - started)
                logger.error("Failed to dispatch document %s: %s", external_id, exc.message)
                raise

        observe_dispatch("delivered", time.perf_counter() - started)
        logger.info(
            "Document %s delivered to %s [%d] @ %d",
            external_id,
            report.topic,
            report.partition,
            report.offset,
        )
        return report

    async def _send(self, document: Document, external_id: str, span) -> DeliveryReport:
        if document.id is None:
            raise DispatchError(
                DispatchFailure.SERIALIZATION,
                "document must be persisted before it is dispatched",
                document_id=external_id,
            )
        try:
            payload = DocumentMessage.from_document(document).encode()
        except (TypeError, ValueError) as exc:
            raise DispatchError(
                DispatchFailure.SERIALIZATION, f"could not serialize message: {exc}", document_id=external_id
            ) from exc
        span.set_attribute("payload.bytes", len(payload))

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._delivery_timeout

        try:
            client = await asyncio.wait_for(self._ensure_client(), timeout=max(deadline - loop.time(), 0))
        except asyncio.TimeoutError:
            client = None
        if client is None:
            reason = "producer is closed" if self._closed else "producer is not connected"
            raise DispatchError(DispatchFailure.REJECTED, f"Kafka {reason}", document_id=external_id)

        try:
            delivery = await asyncio.wait_for(
                client.send(self.topic, value=payload, key=external_id.encode("utf-8"), headers=self._headers()),
                timeout=max(deadline - loop.time(), 0),
            )
        except asyncio.TimeoutError as exc:
            raise DispatchError(
                DispatchFailure.TIMEOUT, "timed out handing message to the Kafka client", document_id=external_id
            ) from exc
        except KafkaError as exc:
            raise DispatchError(
                DispatchFailure.REJECTED, f"Kafka client rejected message: {exc}", document_id=external_id
            ) from exc

        self._track(delivery, external_id)
        try:
            metadata = await asyncio.wait_for(asyncio.shield(delivery), timeout=max(deadline - loop.time(), 0))
        except asyncio.TimeoutError as exc:
            raise DispatchError(
                DispatchFailure.TIMEOUT,
                f"no delivery confirmation within {self._delivery_timeout:.0f}s",
                document_id=external_id,
            ) from exc
        except KafkaError as exc:
            raise DispatchError(
                DispatchFailure.DELIVERY, f"broker failed to deliver message: {exc}", document_id=external_id
            ) from exc

        return DeliveryReport(
            external_id=external_id,
            topic=metadata.topic,
            partition=metadata.partition,
            offset=metadata.offset,
        )

    @staticmethod
    def _headers() -> List[Tuple[str, bytes]]:
        return [CONTENT_TYPE_HEADER, SOURCE_HEADER]

    def _track(self, delivery: asyncio.Future, external_id: str) -> None:
        self._in_flight.add(delivery)

        def _on_done(future: asyncio.Future) -> None:
            self._in_flight.discard(future)
            if future.cancelled():
                event = DeliveryEvent(external_id, error=asyncio.CancelledError())
            elif future.exception() is not None:
                event = DeliveryEvent(external_id, error=future.exception())
            else:
                event = DeliveryEvent(external_id, metadata=future.result())
            self._events.put_nowait(event)

        delivery.add_done_callback(_on_done)

    async def _drain_delivery_events(self) -> None:
        while True:
            event = await self._events.get()
            try:
                if event.error is not None:
                    logger.warning("Kafka delivery failed for document %s: %r", event.external_id, event.error)
                elif event.metadata is not None:
                    logger.debug(
                        "Kafka delivery confirmed for document %s: %s [%d] @ %d",
                        event.external_id,
                        event.metadata.topic,
                        event.metadata.partition,
                        event.metadata.offset,
                    )
            except Exception as exc:  # pragma: no cover
                logger.exception("Kafka delivery listener encountered an error: %s", exc)
            finally:
                self._events.task_done()

    async def check_connection(self) -> BrokerHealth:
        """Fetch cluster metadata to confirm the brokers are reachable."""

        try:
            client = await asyncio.wait_for(self._ensure_client(), timeout=METADATA_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            client = None
        if client is None:
            return BrokerHealth(reachable=False, error="Kafka producer is not connected")

        try:
            metadata = await asyncio.wait_for(client.client.fetch_all_metadata(), timeout=METADATA_TIMEOUT_SECONDS)
        except (KafkaError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("Kafka metadata request failed: %r", exc)
            return BrokerHealth(reachable=False, error=str(exc) or exc.__class__.__name__)

        brokers = len(metadata.brokers())
        logger.info("Kafka connection verified. Available brokers: %d", brokers)
        return BrokerHealth(reachable=True, brokers=brokers)

    async def close(self) -> None:
        self._closed = True
        client, self._client = self._client, None

        if self._connecting is not None and not self._connecting.done():
            self._connecting.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._connecting
        self._connecting = None

        if client is not None:
            try:
                await asyncio.wait_for(client.flush(), timeout=FLUSH_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("Kafka flush did not finish within %.0fs", FLUSH_TIMEOUT_SECONDS)
            # let done-callbacks of flushed deliveries run
            await asyncio.sleep(0)
            if self._in_flight:
                logger.warning("%d messages were still undelivered when the producer closed", len(self._in_flight))
            await self._discard(client)
            logger.info("Kafka producer closed")

        if self._stopping:
            await asyncio.gather(*self._stopping, return_exceptions=True)

        if self._listener is not None:
            if not self._listener.done():
                try:
                    await asyncio.wait_for(self._events.join(), timeout=FLUSH_TIMEOUT_SECONDS)
                except asyncio.TimeoutError:
                    logger.warning("%d delivery events were not logged before shutdown", self._events.qsize())
            self._listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listener
            self._listener = None

    def _discard_later(self, client: AIOKafkaProducer) -> None:
        task = asyncio.create_task(self._discard(client))
        self._stopping.add(task)
        task.add_done_callback(self._stopping.discard)

    async def _discard(self, client: AIOKafkaProducer) -> None:
        try:
            await asyncio.wait_for(client.stop(), timeout=FLUSH_TIMEOUT_SECONDS)
        except (KafkaError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("Kafka producer did not stop cleanly: %r", exc)


document_producer = KafkaDocumentProducer()
