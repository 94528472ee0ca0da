"""FastAPI middleware for request tracing, metrics and rate limiting"""

import math
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from card_ledger.infrastructure.observability.metrics import request_duration_histogram


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request for distributed tracing"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request metrics"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        # Route template keeps label cardinality bounded (no account ids)
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        request_duration_histogram.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).observe(duration)

        return response


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """In-memory per-client request counter; one process only"""

    def __init__(self, max_requests: int = 100, window_seconds: int = 60, clock: Callable[[], float] = time.time):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, client_id: str) -> _Window:
        now = self.clock()
        with self._lock:
            window = self._windows.get(client_id)
            if window is None or now > window.reset_at:
                window = _Window(count=0, reset_at=now + self.window_seconds)
                self._windows[client_id] = window
            window.count += 1
            self._evict_expired(now)
            return _Window(count=window.count, reset_at=window.reset_at)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, w in self._windows.items() if now > w.reset_at]
        for key in expired:
            del self._windows[key]

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


def client_identifier(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window rate limiting with X-RateLimit-* headers"""

    def __init__(self, app, limiter: Optional[FixedWindowRateLimiter] = None, exempt_paths=("/health", "/ready", "/metrics")):
        super().__init__(app)
        self.limiter = limiter or FixedWindowRateLimiter()
        self.exempt_paths = set(exempt_paths)

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        window = self.limiter.hit(client_identifier(request))
        remaining = max(0, self.limiter.max_requests - window.count)
        headers = {
            "X-RateLimit-Limit": str(self.limiter.max_requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(math.ceil(window.reset_at)),
        }

        if window.count > self.limiter.max_requests:
            retry_after = max(0, math.ceil(window.reset_at - self.limiter.clock()))
            headers["Retry-After"] = str(retry_after)
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests, please try again later", "retry_after": retry_after},
                headers=headers,
            )

        response: Response = await call_next(request)
        response.headers.update(headers)
        return response
