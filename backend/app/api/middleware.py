"""
Request correlation and timing.

Each request gets a request id (reused from `X-Request-ID` when the caller
sends one) bound into structlog contextvars, so every lifecycle event logged
while serving it carries the id. Latency is observed per route template,
not per concrete path, to keep label cardinality bounded.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import get_logger
from app.core.metrics import request_latency

logger = get_logger(__name__)

# Probes and scrapes are timed but not logged
UNLOGGED_PATHS = frozenset({"/health", "/metrics"})


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def _log_method(status_code: int):
    if status_code >= 500:
        return logger.error
    # 409 is a lost race or an overlap, not a client mistake
    if status_code >= 400 and status_code != 409:
        return logger.warning
    return logger.info


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - started
            request_latency.labels(method=request.method, route=_route_template(request), status_code=500).observe(elapsed)
            logger.error("request_failed", route=_route_template(request), error=str(e), duration_ms=round(elapsed * 1000, 2))
            raise

        elapsed = time.perf_counter() - started
        duration_ms = round(elapsed * 1000, 2)
        request_latency.labels(
            method=request.method, route=_route_template(request), status_code=response.status_code
        ).observe(elapsed)

        if request.url.path not in UNLOGGED_PATHS:
            _log_method(response.status_code)(
                "request_completed",
                route=_route_template(request),
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
