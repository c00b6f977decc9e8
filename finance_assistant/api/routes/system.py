"""Health, broker connectivity and metrics endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from finance_assistant.api.dependencies import get_producer
from finance_assistant.orchestration.publisher import KafkaDocumentProducer

router = APIRouter(tags=["system"])


class HealthResponse(BaseModel):
    status: str


class KafkaStatusResponse(BaseModel):
    status: str
    message: str
    brokers: int = 0
    topic: Optional[str] = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get("/system/kafka", response_model=KafkaStatusResponse)
async def kafka_status(producer: KafkaDocumentProducer = Depends(get_producer)):
    """Report whether the Kafka cluster answers a metadata request."""
    health = await producer.check_connection()
    if not health.reachable:
        body = KafkaStatusResponse(status="error", message=health.error or "Kafka unreachable", topic=producer.topic)
        return JSONResponse(status_code=503, content=body.model_dump())

    return KafkaStatusResponse(
        status="ok",
        message="Kafka connection established",
        brokers=health.brokers,
        topic=producer.topic,
    )


@router.get("/metrics")
async def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
