"""Prometheus metrics for HTTP requests and hosted-backend calls.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- record_backend_call(): Counter/histogram update for one backend round trip
- get_metrics_response(): Response body for the /metrics route
"""

from __future__ import annotations

import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Backend Metrics ──────────────────────────────────────────────────────────

backend_requests_total = Counter(
    "backend_requests_total",
    "Total calls to the hosted backend",
    ["api", "resource", "method", "outcome"],
)

backend_request_duration_seconds = Histogram(
    "backend_request_duration_seconds",
    "Hosted backend call duration in seconds",
    ["api", "method"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


def record_backend_call(
    api: str, resource: str, method: str, outcome: str, duration: float
) -> None:
    """Record one backend round trip.

    Args:
        api: "rest" or "auth".
        resource: Table name or auth endpoint.
        method: HTTP method.
        outcome: "ok", "error" or "network_error".
        duration: Wall-clock seconds spent on the call.
    """
    backend_requests_total.labels(
        api=api, resource=resource, method=method, outcome=outcome
    ).inc()
    backend_request_duration_seconds.labels(api=api, method=method).observe(duration)


# ── Metrics Middleware ───────────────────────────────────────────────────────


def _endpoint_label(request: Request) -> str:
    """Route template of the matched route (e.g. /api/v1/deals/{deal_id}), else the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request count and duration per method and route template.

    Skips the /metrics endpoint itself.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        endpoint = _endpoint_label(request)
        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()
        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
            elapsed
        )
        return response


def get_metrics_response() -> Response:
    """Render the default registry in Prometheus text format."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )
