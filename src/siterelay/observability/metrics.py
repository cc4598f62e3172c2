from __future__ import annotations

"""Prometheus metrics for the SiteRelay FastAPI backend.

Adds an HTTP middleware that records request latency per method/path/status,
plus counters for credential failover, stream termination and publishing.
"""

import time
from typing import Callable, Awaitable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

# Histogram buckets chosen for web latencies (seconds); streamed generations land in the tail
REQUEST_LATENCY = Histogram(
    "siterelay_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 120.0),
)

FAILOVER_ATTEMPTS = Counter(
    "siterelay_failover_attempts_total",
    "Credential probe attempts against the inference gateway",
    labelnames=("outcome",),
)

GENERATION_STOPS = Counter(
    "siterelay_generation_stops_total",
    "How streamed generations ended",
    labelnames=("reason",),
)

PUBLISH_RESULTS = Counter(
    "siterelay_publish_total",
    "Publish pipeline outcomes",
    labelnames=("branch", "outcome"),
)


def sanitize_path(path: str) -> str:
    """Reduce paths to their top-level segment to keep label cardinality low."""
    if not path:
        return "/"
    segs = path.split("?")[0].split("/")
    if len(segs) > 2 and segs[1] == "api":
        return "/api/" + segs[2]
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
