from __future__ import annotations

"""Prometheus metrics for the narrative API.

Adds an HTTP middleware that records request latency per method/path/status,
plus counters for attachment settlements and model gateway calls.
"""

import time
from typing import Callable, Awaitable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

# Histogram buckets chosen for web latencies (seconds); media analysis can run long
REQUEST_LATENCY = Histogram(
    "narrative_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 120.0),
)

ATTACHMENTS_SETTLED = Counter(
    "narrative_attachments_settled_total",
    "Attachments that reached a terminal status",
    labelnames=("type", "status"),
)

GATEWAY_CALLS = Counter(
    "narrative_gateway_calls_total",
    "Calls issued to the generative model provider",
    labelnames=("capability", "outcome"),
)


def sanitize_path(path: str) -> str:
    """Reduce high-cardinality paths (e.g., /prompts/{id}) to a coarse label."""
    if not path:
        return "/"
    segs = path.split("?")[0].split("/")
    if len(segs) > 1:
        return "/" + segs[1]
    return path


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        try:
            REQUEST_LATENCY.labels(
                method=request.method,
                path=sanitize_path(request.url.path),
                status=str(response.status_code),
            ).observe(elapsed)
        except Exception:
            # Never block the request due to metrics
            pass
        return response

    return middleware
