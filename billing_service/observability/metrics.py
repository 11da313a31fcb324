"""
Prometheus metrics for the billing service.
"""

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# === HTTP METRICS ===
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status",
    ["method", "endpoint", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "Request duration in seconds",
    ["method", "endpoint"],
    # 10ms to 10s; gateway calls dominate the upper buckets
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests", "Current active HTTP requests", ["method", "endpoint"]
)

EXCEPTION_COUNT = Counter(
    "http_exceptions_total",
    "Total number of exceptions raised by the service",
    ["exception_type", "method", "endpoint"],
)

# === BUSINESS METRICS ===
BILLS_CREATED = Counter(
    "billplz_bills_created_total",
    "Bill creation attempts by outcome (created, gateway_error, dangling)",
    ["status"],
)

CALLBACKS_PROCESSED = Counter(
    "payment_callbacks_total",
    "Payment callbacks by outcome (paid, failed, duplicate, conflict, rejected)",
    ["status"],
)

EMAILS_SENT = Counter(
    "emails_sent_total",
    "Transactional emails by template and outcome",
    ["template", "status"],
)


def create_metrics_endpoint():
    """Create a /metrics endpoint for Prometheus."""

    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return metrics
