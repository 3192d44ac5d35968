"""Prometheus metrics middleware and bidding counters."""

import re
import time
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_UUID_SEGMENT = re.compile(
    r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}(?=/|$)"
)


# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
)

BID_LATENCY = Histogram(
    "bid_latency_seconds",
    "Bid request latency in seconds",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

# Bidding engine metrics
BID_OUTCOMES = Counter(
    "bids_total",
    "Bid attempts by outcome",
    ["outcome"],  # ACCEPTED or a rejection code
)

BID_CONFLICTS = Counter(
    "bid_conflicts_total",
    "Compare-and-swap conflicts while committing bids",
)

LEDGER_INCONSISTENCIES = Counter(
    "bid_ledger_inconsistencies_total",
    "Item updates whose bid ledger append failed",
)

AUCTIONS_CLOSED = Counter(
    "auctions_closed_total",
    "Auctions transitioned to ended by the closing sweep",
)


# =============================================================================
# Metrics Middleware
# =============================================================================

class PrometheusMiddleware(BaseHTTPMiddleware):
    """Request count and latency per route template.

    Item and bid ids in the path are collapsed to ``{id}`` so each route is
    one label value no matter how many listings exist.
    """

    API_PREFIXES = ("/api/v1/items", "/api/v1/bids")
    PLAIN_ENDPOINTS = ("/health", "/metrics")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = self._normalize_endpoint(request.url.path)
        is_bid_placement = endpoint == "/api/v1/bids" and request.method == "POST"

        ACTIVE_REQUESTS.inc()
        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            ACTIVE_REQUESTS.dec()
            latency = time.perf_counter() - start_time

            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=status_code,
            ).inc()
            REQUEST_LATENCY.labels(method=request.method, endpoint=endpoint).observe(latency)

            if is_bid_placement:
                BID_LATENCY.observe(latency)

    def _normalize_endpoint(self, path: str) -> str:
        if path in self.PLAIN_ENDPOINTS:
            return path
        if not path.startswith(self.API_PREFIXES):
            return "/other"
        return _UUID_SEGMENT.sub("/{id}", path.rstrip("/"))


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics scrape endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# =============================================================================
# Helper Functions for Manual Metric Recording
# =============================================================================

def record_bid_outcome(outcome: str) -> None:
    BID_OUTCOMES.labels(outcome=outcome).inc()


def record_bid_conflict() -> None:
    BID_CONFLICTS.inc()


def record_ledger_inconsistency() -> None:
    LEDGER_INCONSISTENCIES.inc()


def record_auctions_closed(count: int) -> None:
    AUCTIONS_CLOSED.inc(count)
