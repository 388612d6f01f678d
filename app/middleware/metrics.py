"""
Prometheus Metrics Middleware

Exposes:
  - http_requests_total           (counter)
  - http_request_duration_seconds (histogram)
  - http_requests_in_progress     (gauge)
  - domain_verifications_total    (counter, by outcome)
  - dns_lookups_total             (counter, by record type / result)
  - domain_host_resolutions_total (counter, by result)
  - app_info                      (info)
"""

import re
import time

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# ── Metrics ──
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of in-progress requests",
    ["method"],
)
DOMAIN_VERIFICATIONS = Counter(
    "domain_verifications_total",
    "Domain verification attempts by outcome",
    ["outcome"],
)
DNS_LOOKUPS = Counter(
    "dns_lookups_total",
    "DNS lookups performed by the challenge checker",
    ["record", "result"],
)
DOMAIN_RESOLUTIONS = Counter(
    "domain_host_resolutions_total",
    "Host header resolutions by the custom domain middleware",
    ["result"],  # cache_hit | resolved | not_connected | error
)
APP_INFO = Info("app", "Application metadata")

_UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")
_HOSTNAME_SEGMENT_RE = re.compile(r"/domains/check/[^/]+")


def _normalize_path(path: str) -> str:
    """Collapse UUID / hostname path segments to prevent cardinality explosion."""
    path = _UUID_RE.sub("{id}", path)
    path = _HOSTNAME_SEGMENT_RE.sub("/domains/check/{hostname}", path)
    return path


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        endpoint = _normalize_path(request.url.path)
        status_code = "500"
        in_progress = REQUESTS_IN_PROGRESS.labels(method=method)
        in_progress.inc()
        start = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(time.perf_counter() - start)
            REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status_code).inc()
            in_progress.dec()


def metrics_endpoint(request: Request) -> Response:
    """Expose /metrics for Prometheus scraping."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def set_app_info(version: str = "1.0.0", env: str = "development") -> None:
    APP_INFO.info({"version": version, "environment": env})
