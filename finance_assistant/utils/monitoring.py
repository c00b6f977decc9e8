"""Monitoring utilities leveraging Prometheus client."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

http_requests_total = Counter(
    "finance_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_latency_seconds = Histogram(
    "finance_http_request_latency_seconds",
    "HTTP request latency",
    ["method", "path"],
)

documents_submitted_total = Counter(
    "finance_documents_submitted_total",
    "Document submissions by outcome",
    ["outcome"],
)

document_dispatch_total = Counter(
    "finance_document_dispatch_total",
    "Kafka dispatch attempts by result",
    ["result"],
)

document_dispatch_latency_seconds = Histogram(
    "finance_document_dispatch_latency_seconds",
    "Time spent waiting for Kafka delivery acknowledgement",
)


def observe_request(method: str, path: str, status: int, duration_seconds: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_latency_seconds.labels(method=method, path=path).observe(duration_seconds)


def observe_dispatch(result: str, duration_seconds: float) -> None:
    document_dispatch_total.labels(result=result).inc()
    document_dispatch_latency_seconds.observe(duration_seconds)


def observe_submission(outcome: str) -> None:
    documents_submitted_total.labels(outcome=outcome).inc()
