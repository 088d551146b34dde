# backend/app/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..services.runtime_metrics import METRICS

log = logging.getLogger("rentflow.request")

# health checks and scrapes would drown the access log
QUIET_PATHS = frozenset({"/api/health", "/api/metrics"})


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One access-log record per request. The formatter adds request_id, so
    RequestIDMiddleware must wrap this one. The dev X-User-Id header is the
    only caller hint visible here; JWT principals resolve inside handlers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            latency_ms = int((time.perf_counter() - t0) * 1000)
            METRICS.inc("http_requests_total")
            METRICS.inc(f"http_responses_{status_code // 100}xx_total")

            path = request.url.path
            level = logging.DEBUG if path in QUIET_PATHS else logging.INFO
            if status_code >= 500:
                level = logging.ERROR
            log.log(
                level,
                "%s %s -> %s",
                request.method,
                path,
                status_code,
                extra={
                    "method": request.method,
                    "path": path,
                    "status_code": status_code,
                    "latency_ms": latency_ms,
                    "user_id": request.headers.get("X-User-Id"),
                },
            )
