"""Prometheus metric helpers."""
from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "repochat_requests_total",
    "HTTP requests processed by the API",
    ("method", "path", "status"),
)

REQUEST_LATENCY = Histogram(
    "repochat_request_latency_seconds",
    "Latency of HTTP requests processed by the API",
    ("method", "path"),
    buckets=(
        0.01,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
        30.0,
        60.0,
        300.0,
    ),
)

INGESTION_RESULTS = Counter(
    "repochat_ingestions_total",
    "Repository ingestion outcomes",
    ("status",),
)

UPSTREAM_RETRIES = Counter(
    "repochat_upstream_retries_total",
    "Retried calls to upstream services",
    ("service",),
)


def record_request(method: str, path: str, status_code: int, duration: float) -> None:
    """Record counters and histograms for a processed HTTP request."""

    REQUEST_COUNT.labels(method, path, str(status_code)).inc()
    REQUEST_LATENCY.labels(method, path).observe(duration)


def record_ingestion_result(status: str) -> None:
    """Increment the ingestion outcome counter for the provided status."""

    INGESTION_RESULTS.labels(status).inc()


def record_upstream_retry(service: str) -> None:
    UPSTREAM_RETRIES.labels(service).inc()
