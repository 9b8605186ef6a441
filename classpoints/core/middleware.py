import logging
import time
import uuid
from collections import deque
from typing import Callable, Optional

import anyio
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from classpoints.core.exception_handlers import error_response
from classpoints.core.exceptions import PayloadTooLargeError, RateLimitError, RequestTimeoutError

logger = logging.getLogger(__name__)


def client_address(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request id, logs the exchange and applies the request deadline."""

    def __init__(
        self,
        app,
        timeout_seconds: float = 30.0,
        max_body_bytes: int = 1024 * 1024,
        streaming_paths: Optional[list[str]] = None,
    ):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds
        self.max_body_bytes = max_body_bytes
        self.streaming_paths = streaming_paths or ["/sse/events"]

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()
        method = request.method
        url = str(request.url)
        client = client_address(request)

        logger.info("[Request] %s %s from %s (%s)", method, url, client, request_id)

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_body_bytes:
            logger.warning("[Response] %s %s from %s -> 413 body of %s bytes", method, url, client, content_length)
            return error_response(PayloadTooLargeError(), headers={"X-Request-ID": request_id})

        streaming = any(request.url.path.endswith(path) for path in self.streaming_paths)
        if streaming or not self.timeout_seconds:
            response = await call_next(request)
        else:
            response = None
            with anyio.move_on_after(self.timeout_seconds):
                response = await call_next(request)
        if response is None:
            logger.error("[Response] %s %s from %s -> 408 after %.1fs", method, url, client, self.timeout_seconds)
            return error_response(RequestTimeoutError(), headers={"X-Request-ID": request_id})

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id
        if response.status_code >= 500:
            logger.error("[Response] %s %s from %s -> %s in %.1fms", method, url, client, response.status_code, duration_ms)
        elif response.status_code >= 400:
            logger.warning("[Response] %s %s from %s -> %s in %.1fms", method, url, client, response.status_code, duration_ms)
        else:
            logger.info("[Response] %s %s from %s -> %s in %.1fms", method, url, client, response.status_code, duration_ms)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding one-minute window per client address."""

    def __init__(
        self,
        app,
        limit_per_minute: int = 600,
        exclude_paths: Optional[list[str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.limit_per_minute = limit_per_minute
        self.exclude_paths = exclude_paths or ["/health", "/sse", "/docs", "/openapi.json", "/redoc"]
        self.clock = clock
        self._hits: dict[str, deque] = {}
        self._last_sweep = 0.0

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self.limit_per_minute <= 0:
            return await call_next(request)
        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        key = client_address(request)
        now = self.clock()
        if now - self._last_sweep >= 60:
            self._sweep(now)
        window = self._hits.setdefault(key, deque())
        while window and now - window[0] >= 60:
            window.popleft()

        if len(window) >= self.limit_per_minute:
            retry_after = max(1, int(60 - (now - window[0])))
            logger.warning("Rate limit hit for %s on %s %s", key, request.method, request.url.path)
            return error_response(
                RateLimitError(details={"retryAfter": retry_after}),
                headers={"Retry-After": str(retry_after), "X-RateLimit-Remaining": "0"},
            )

        window.append(now)
        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(self.limit_per_minute - len(window))
        return response

    def _sweep(self, now: float) -> None:
        """Drops clients whose window holds no hit younger than a minute."""
        stale = [key for key, window in self._hits.items() if not window or now - window[-1] >= 60]
        for key in stale:
            del self._hits[key]
        self._last_sweep = now
