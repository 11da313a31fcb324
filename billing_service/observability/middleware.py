"""
FastAPI middleware for Prometheus metrics collection.
"""

import time
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.routing import Match

from billing_service.observability.metrics import (
    ACTIVE_REQUESTS,
    EXCEPTION_COUNT,
    REQUEST_COUNT,
    REQUEST_DURATION,
)


def route_label(request: Request) -> str:
    """Return the route template for the request so labels stay bounded."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match in (Match.FULL, Match.PARTIAL):
            return route.path
    return "unmatched"


async def metrics_middleware(
    request: Request, call_next: Callable[..., Awaitable[Response]]
) -> Response:
    """
    Middleware to collect HTTP request metrics.

    Tracks:
    - Request count
    - Request duration
    - Active requests
    - Exceptions (by type)
    """
    method = request.method
    path = route_label(request)

    ACTIVE_REQUESTS.labels(method=method, endpoint=path).inc()
    start_time = time.time()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception as e:
        EXCEPTION_COUNT.labels(
            exception_type=type(e).__name__, method=method, endpoint=path
        ).inc()
        raise
    finally:
        duration = time.time() - start_time
        ACTIVE_REQUESTS.labels(method=method, endpoint=path).dec()
        REQUEST_COUNT.labels(
            method=method, endpoint=path, status=str(status_code)
        ).inc()
        REQUEST_DURATION.labels(method=method, endpoint=path).observe(duration)

    return response
