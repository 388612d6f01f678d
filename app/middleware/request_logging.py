"""
Request logging middleware

Binds request id and inbound Host to the log context, echoes the id as
X-Request-ID and logs one line per request with status and latency.
/health and /metrics are only logged when they fail.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.logging_config import generate_request_id, host_ctx, request_id_ctx, user_id_ctx
from app.services.hostname import normalize_request_host

logger = logging.getLogger("hubisck.request")

_QUIET_PATHS = frozenset({"/health", "/metrics"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        rid = request.headers.get("x-request-id") or generate_request_id()
        tokens = (
            request_id_ctx.set(rid),
            host_ctx.set(normalize_request_host(request.headers.get("host")) or "-"),
            user_id_ctx.set("-"),
        )
        path = request.url.path
        start = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    "%s %s failed after %.1fms", request.method, path, (time.perf_counter() - start) * 1000
                )
                raise

            elapsed = (time.perf_counter() - start) * 1000
            response.headers["X-Request-ID"] = rid
            if response.status_code >= 500:
                logger.warning("%s %s → %d (%.1fms)", request.method, path, response.status_code, elapsed)
            elif path not in _QUIET_PATHS:
                logger.info("%s %s → %d (%.1fms)", request.method, path, response.status_code, elapsed)
            return response
        finally:
            request_id_ctx.reset(tokens[0])
            host_ctx.reset(tokens[1])
            user_id_ctx.reset(tokens[2])
