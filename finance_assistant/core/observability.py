"""OpenTelemetry initialization helpers."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from finance_assistant.core.config import settings

logger = logging.getLogger(__name__)
_TRACING_INITIALIZED = False


def setup_tracing(app: Optional[FastAPI] = None) -> None:
    """Configure the tracer provider and instrument FastAPI if requested.

    Spans are only exported when `OTEL_EXPORTER_OTLP_ENDPOINT` is set; without
    it the provider still records spans so in-process context propagation works.
    """

    if not settings.ENABLE_TRACING:
        return

    global _TRACING_INITIALIZED
    if not _TRACING_INITIALIZED:
        resource = Resource.create(
            {
                "service.name": settings.API_TITLE.lower().replace(" ", "-"),
                "service.version": settings.API_VERSION,
                "environment": settings.ENVIRONMENT,
            }
        )

        provider = TracerProvider(resource=resource)
        if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
            headers = _parse_headers(settings.OTEL_EXPORTER_OTLP_HEADERS)
            exporter = OTLPSpanExporter(endpoint=str(settings.OTEL_EXPORTER_OTLP_ENDPOINT), headers=headers or None)
            provider.add_span_processor(BatchSpanProcessor(exporter))
            logger.info("OpenTelemetry tracing exporting to %s", settings.OTEL_EXPORTER_OTLP_ENDPOINT)
        else:
            logger.info("OTEL_EXPORTER_OTLP_ENDPOINT not set; spans are not exported")
        trace.set_tracer_provider(provider)

        _TRACING_INITIALIZED = True

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)


def _parse_headers(raw_headers: Optional[str]) -> Dict[str, str]:
    if not raw_headers:
        return {}
    pairs = {}
    for item in raw_headers.split(","):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        pairs[key.strip()] = value.strip()
    return pairs


__all__ = ["setup_tracing"]
