"""Observability infrastructure for repo-drive.

Provides structured logging, Prometheus metrics, and request-ID
correlation middleware.

Quick start::

    from repo_drive.observability import configure_logging, get_logger
    from repo_drive.observability.middleware import (
        MetricsMiddleware,
        RequestIdMiddleware,
        RequestLoggingMiddleware,
    )

    configure_logging()
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)
"""

from .logging import configure_logging, get_logger, redact_credentials, request_id_ctx
from .metrics import metrics_text

__all__ = [
    "configure_logging",
    "get_logger",
    "metrics_text",
    "redact_credentials",
    "request_id_ctx",
]
