"""Prometheus metrics for repo-drive.

Usage::

    from repo_drive.observability.metrics import SHARE_ACCESS_TOTAL

    SHARE_ACCESS_TOTAL.labels(endpoint="landing", outcome="served").inc()
"""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS_TOTAL = Counter(
    "repo_drive_http_requests_total",
    "Total HTTP requests by method, path pattern, and status code.",
    labelnames=["method", "path", "status"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "repo_drive_http_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_FLIGHT = Gauge(
    "repo_drive_http_requests_in_flight",
    "Number of HTTP requests currently being processed.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Share-link metrics
# ---------------------------------------------------------------------------

SHARE_LINKS_CREATED_TOTAL = Counter(
    "repo_drive_share_links_created_total",
    "Share links issued.",
    registry=REGISTRY,
)

SHARE_ACCESS_TOTAL = Counter(
    "repo_drive_share_access_total",
    "Share link access attempts by endpoint and outcome.",
    labelnames=["endpoint", "outcome"],
    registry=REGISTRY,
)

SHARE_LINKS_EVICTED_TOTAL = Counter(
    "repo_drive_share_links_evicted_total",
    "Expired share links removed from the registry.",
    labelnames=["reason"],
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Upstream GitHub metrics
# ---------------------------------------------------------------------------

GITHUB_REQUESTS_TOTAL = Counter(
    "repo_drive_github_requests_total",
    "GitHub API calls by operation and outcome.",
    labelnames=["operation", "outcome"],
    registry=REGISTRY,
)


def metrics_text() -> tuple[bytes, str]:
    """Generate Prometheus exposition text and content-type header."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
