"""ASGI middlewares: request logging, exception logging and rate limiting."""
import json
import time
import uuid
from collections import defaultdict, deque
from typing import Callable, Deque, Dict

from taskflow.logger import get_logger

log = get_logger("http")


def generate_request_id() -> str:
    return str(uuid.uuid4())


class RequestLoggingMiddleware:
    """
    Logs incoming requests and responses, sets the X-Request-ID header and
    records the duration.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        request_id = generate_request_id()
        scope["request_id"] = request_id

        method = scope.get("method", "")
        path = scope.get("path", "")

        start = time.perf_counter()
        log.info("Incoming request", extra={"request_id": request_id, "method": method, "path": path})

        status_code_container = {"status": None}

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                status_code_container["status"] = message.get("status", 0)
                message["headers"] = list(message.get("headers", [])) + [
                    (b"x-request-id", request_id.encode("utf-8"))
                ]
            await send(message)

        await self.app(scope, receive, send_wrapper)

        duration = time.perf_counter() - start
        log.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "status_code": status_code_container["status"],
                "duration_ms": round(duration * 1000, 2),
            },
        )


class ExceptionLoggingMiddleware:
    """
    Logs exceptions with the full stack trace and re-raises them so the
    registered exception handlers can produce the response.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        try:
            await self.app(scope, receive, send)
        except Exception:
            log.exception(
                "Unhandled exception in request",
                extra={
                    "request_id": scope.get("request_id"),
                    "method": scope.get("method"),
                    "path": scope.get("path"),
                },
            )
            raise


class RateLimitMiddleware:
    """
    Rolling-window limit per client address, shared by every HTTP endpoint.

    State is kept in process memory; each worker counts on its own.
    """

    def __init__(self, app, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.app = app
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = clock()

    def _client_key(self, scope) -> str:
        client = scope.get("client")
        return client[0] if client else "unknown"

    def _sweep(self, now: float) -> None:
        """Forget addresses whose last request fell out of the window."""
        for key in [key for key, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_seconds]:
            del self._hits[key]
        self._last_sweep = now

    def _allow(self, key: str) -> bool:
        now = self.clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)
        hits = self._hits[key]
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        key = self._client_key(scope)
        if self._allow(key):
            return await self.app(scope, receive, send)

        log.warning(
            "Rate limit exceeded",
            extra={"client": key, "path": scope.get("path"), "request_id": scope.get("request_id")},
        )
        body = json.dumps({"detail": "Too many requests from this IP, please try again later."}).encode("utf-8")
        await send({
            "type": "http.response.start",
            "status": 429,
            "headers": [
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode("ascii")),
                (b"retry-after", str(int(self.window_seconds)).encode("ascii")),
            ],
        })
        await send({"type": "http.response.body", "body": body})
