"""
Per-request logging context and access log.

Binds an ``X-Request-ID`` (reusing the caller's when present) to the
logging context for the lifetime of the request, echoes it back with an
``X-Response-Time`` header and writes one access-log line per request.
"""

import logging
import time
import uuid
from typing import Callable, FrozenSet, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.utils.logging import clear_request_context, get_request_id, set_request_context

logger = logging.getLogger(__name__)

# Header names checked in order for an id assigned upstream.
REQUEST_ID_HEADERS = ("X-Request-ID", "X-Amzn-Trace-Id")


def _client_address(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Access logging with request ids.

    ``silent_paths`` are never logged. ``failure_only_paths`` are logged
    only when they answer with a 4xx or 5xx, which keeps load balancer
    health probes out of the log.
    """

    def __init__(
        self,
        app,
        silent_paths: Optional[Iterable[str]] = None,
        failure_only_paths: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        self.silent_paths: FrozenSet[str] = frozenset(
            silent_paths or ("/", "/docs", "/redoc", "/openapi.json", "/favicon.ico")
        )
        self.failure_only_paths: FrozenSet[str] = frozenset(failure_only_paths or ("/health",))

    def _wants_log(self, path: str, status_code: int) -> bool:
        if path in self.silent_paths:
            return False
        return status_code >= 400 or path not in self.failure_only_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = next(
            (request.headers[h] for h in REQUEST_ID_HEADERS if request.headers.get(h)),
            None,
        ) or str(uuid.uuid4())
        correlation_id = request.headers.get("X-Correlation-ID")

        token = set_request_context(request_id=request_id, correlation_id=correlation_id)
        request.state.request_id = request_id
        path = request.url.path
        started = time.perf_counter()

        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"
            if correlation_id:
                response.headers["X-Correlation-ID"] = correlation_id

            if self._wants_log(path, response.status_code):
                logger.log(
                    _level_for(response.status_code),
                    "%s %s %d (%.2fms)",
                    request.method,
                    path,
                    response.status_code,
                    elapsed_ms,
                    extra={
                        "event": "http_request",
                        "http_method": request.method,
                        "http_path": path,
                        "http_query": str(request.query_params),
                        "http_status": response.status_code,
                        "duration_ms": round(elapsed_ms, 2),
                        "client_ip": _client_address(request),
                    },
                )
            return response
        except Exception as exc:
            logger.exception(
                "%s %s raised %s after %.2fms",
                request.method,
                path,
                type(exc).__name__,
                (time.perf_counter() - started) * 1000,
                extra={"event": "http_request_error", "http_path": path},
            )
            raise
        finally:
            clear_request_context(token)


def get_request_id_from_request(request: Request) -> str:
    """Request id for handlers: request state first, then the log context."""
    return getattr(request.state, "request_id", None) or get_request_id() or "-"
