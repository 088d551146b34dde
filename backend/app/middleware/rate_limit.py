# backend/app/middleware/rate_limit.py
from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..services.runtime_metrics import METRICS

log = logging.getLogger(__name__)


@dataclass
class _Bucket:
    tokens: float
    updated_at: float


class TokenBucketLimiter:
    """
    Token bucket per client key.

    capacity    -> burst size
    refill_rate -> tokens per second

    Buckets that have been idle for `idle_seconds` are full again by
    construction, so they are evicted instead of kept around forever.
    """

    def __init__(
        self,
        *,
        capacity: int,
        refill_per_minute: int,
        idle_seconds: int = 600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if refill_per_minute < 1:
            raise ValueError("refill_per_minute must be >= 1")

        self.capacity = float(capacity)
        self.refill_rate = float(refill_per_minute) / 60.0
        self.idle_seconds = float(idle_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: dict[str, _Bucket] = {}
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.idle_seconds:
            return
        cutoff = now - self.idle_seconds
        stale = [k for k, b in self._buckets.items() if b.updated_at < cutoff]
        for k in stale:
            del self._buckets[k]
        self._last_sweep = now

    def acquire(self, key: str) -> tuple[bool, int]:
        """
        Take one token for `key`.

        Returns (allowed, retry_after_seconds).
        """
        now = self._clock()
        with self._lock:
            self._sweep(now)

            b = self._buckets.get(key)
            if b is None:
                b = _Bucket(tokens=self.capacity, updated_at=now)
                self._buckets[key] = b
            else:
                elapsed = max(0.0, now - b.updated_at)
                b.tokens = min(self.capacity, b.tokens + elapsed * self.refill_rate)
                b.updated_at = now

            if b.tokens >= 1.0:
                b.tokens -= 1.0
                return True, 0

            missing = 1.0 - b.tokens
            return False, max(1, int(math.ceil(missing / self.refill_rate)))

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)


def _client_key(request: Request, trusted_proxies: frozenset[str] = frozenset()) -> str:
    """
    The direct peer, unless that peer is a trusted proxy. Then the rightmost
    X-Forwarded-For hop that is not itself trusted; hops further left are
    client-controlled and never used.
    """
    peer = request.client.host if request.client else "unknown"
    if peer not in trusted_proxies:
        return peer
    hops = [h.strip() for h in (request.headers.get("X-Forwarded-For") or "").split(",") if h.strip()]
    for hop in reversed(hops):
        if hop not in trusted_proxies:
            return hop
    return peer


def parse_trusted_proxies(val: list[str] | str | None) -> frozenset[str]:
    if not val:
        return frozenset()
    items = val.split(",") if isinstance(val, str) else val
    return frozenset(x.strip() for x in items if x and x.strip())


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        *,
        limiter: TokenBucketLimiter,
        exempt_paths: Optional[set[str]] = None,
        trusted_proxies: frozenset[str] = frozenset(),
    ) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.exempt_paths = exempt_paths or set()
        self.trusted_proxies = trusted_proxies

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        key = _client_key(request, self.trusted_proxies)
        allowed, retry_after = self.limiter.acquire(key)
        if not allowed:
            METRICS.inc("rate_limited_total")
            log.warning("rate limit exceeded", extra={"user_id": request.headers.get("X-User-Id")})
            return JSONResponse(
                status_code=429,
                content={"ok": False, "error": "rate_limited", "detail": "Too many requests"},
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
