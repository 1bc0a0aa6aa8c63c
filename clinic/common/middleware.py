"""HTTP middleware: request ID tracing, request logging, Prometheus timing, security headers.

Every class here is registered in clinic/main.py.

Usage:
    from clinic.common.middleware import request_id_var
    rid = request_id_var.get("")
"""

from __future__ import annotations

import re
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from clinic.common.logging import get_logger
from clinic.common.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = get_logger("SYSTEM")

# Probe and scrape traffic is neither logged nor measured.
_QUIET_PATHS = frozenset({"/health", "/ready", "/metrics"})

_PATH_ID_PATTERNS = [
    (re.compile(r"/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"), "/{id}"),
    (re.compile(r"/\d+"), "/{id}"),
]


def _normalize_path(path: str) -> str:
    """Collapse numeric and UUID path segments to {id} for metric labels."""
    for pattern, replacement in _PATH_ID_PATTERNS:
        path = pattern.sub(replacement, path)
    return path


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Propagate ``X-Request-ID`` (or a fresh UUID4) through the request.

    The ID is stored in ``request_id_var`` so every log line written while
    handling the request carries it.
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex
        request_id_var.set(rid)

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every non-probe request."""

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        if request.url.path in _QUIET_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "data": {
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                }
            },
        )
        return response


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Count requests and observe their duration per normalized path."""

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        if request.url.path in _QUIET_PATHS:
            return await call_next(request)

        method = request.method
        path_template = _normalize_path(request.url.path)
        status_code = "500"

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method).inc()
        start = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method).dec()
            HTTP_REQUESTS_TOTAL.labels(
                method=method,
                path_template=path_template,
                status_code=status_code,
            ).inc()
            HTTP_REQUEST_DURATION_SECONDS.labels(
                method=method,
                path_template=path_template,
            ).observe(time.perf_counter() - start)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp API hardening headers on every response.

    Responses carry subscription material, so nothing is cached.
    """

    HEADERS: dict[str, str] = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "same-origin",
        "Cache-Control": "no-store",
    }

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        response = await call_next(request)
        for header, value in self.HEADERS.items():
            response.headers.setdefault(header, value)
        return response
