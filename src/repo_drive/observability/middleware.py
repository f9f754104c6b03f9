"""HTTP middleware for repo-drive: request correlation, metrics, access log.

A share URL carries the issuer and the link token in its path, so raw
paths must never become a metric label or a log field. Every middleware
here labels requests with ``route_label(request)``, which collapses
``/share/<issuer>/<token>[/download|/content]`` to a fixed template.

Registration order matters: ``RequestIdMiddleware`` must be outermost so
the ID is bound before the other two run::

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)
"""

from __future__ import annotations

import re
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .logging import get_logger, request_id_ctx
from .metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_FLIGHT,
    HTTP_REQUESTS_TOTAL,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Caller-supplied IDs are echoed into logs, so only plain UUID-like
# strings are accepted.
_VALID_REQUEST_ID = re.compile(r"^[a-zA-Z0-9\-]{8,128}$")

_SHARE_ROUTES = [
    (re.compile(r"^/share/[^/]+/[^/]+/(download|content)$"), r"/share/{issuer}/{token}/\1"),
    (re.compile(r"^/share/[^/]+/[^/]+$"), "/share/{issuer}/{token}"),
]


def normalize_path(path: str) -> str:
    """Replace the issuer and token segments of a share URL with placeholders."""
    for pattern, template in _SHARE_ROUTES:
        path = pattern.sub(template, path)
    return path


def route_label(request: Request) -> str:
    label = getattr(request.state, "route_label", None)
    if label is None:
        label = request.state.route_label = normalize_path(request.url.path)
    return label


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request ID for the duration of one request.

    The ID lands in ``request.state.request_id`` and in ``request_id_ctx``
    (so every log line emitted while serving the request carries it), and
    is returned in the ``X-Request-ID`` response header. A well-formed
    incoming ``X-Request-ID`` is reused; anything else gets a new UUID4.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        rid = incoming if _VALID_REQUEST_ID.match(incoming) else str(uuid.uuid4())

        request.state.request_id = rid
        ctx_token = request_id_ctx.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(ctx_token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count requests and observe latency per method and route label.

    A handler that raises is counted as a 500 before the error propagates.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        method, path = request.method, route_label(request)
        status = "500"

        HTTP_REQUESTS_IN_FLIGHT.inc()
        start = time.perf_counter()
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            HTTP_REQUESTS_IN_FLIGHT.dec()
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path).observe(
                time.perf_counter() - start,
            )
            HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=status).inc()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log: ``request_completed`` per response, ``request_failed`` on error."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                method=request.method,
                path=route_label(request),
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise

        logger.info(
            "request_completed",
            method=request.method,
            path=route_label(request),
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response
