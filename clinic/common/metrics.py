"""Prometheus metrics definitions.

All metric objects are module-level singletons:

    from clinic.common.metrics import PUSH_DELIVERIES_TOTAL

The /metrics endpoint is mounted in clinic/main.py via
prometheus_client.make_asgi_app().
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info

APP_INFO = Info("app", "Application metadata")

# ─── HTTP Metrics ───

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path_template", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=["method", "path_template"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    labelnames=["method"],
)

# ─── Push Dispatch ───

PUSH_DISPATCH_TOTAL = Counter(
    "push_dispatch_total",
    "Dispatch calls by outcome",
    labelnames=["outcome"],
)

PUSH_DISPATCH_DURATION_SECONDS = Histogram(
    "push_dispatch_duration_seconds",
    "Wall time of one dispatch fan-out",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

PUSH_DELIVERIES_TOTAL = Counter(
    "push_deliveries_total",
    "Per-endpoint delivery attempts by outcome",
    labelnames=["outcome"],
)

PUSH_SUBSCRIPTIONS_PRUNED_TOTAL = Counter(
    "push_subscriptions_pruned_total",
    "Endpoints removed after the push service reported them gone",
)

# ─── Subscription Sync ───

PUSH_SUBSCRIPTION_SYNC_TOTAL = Counter(
    "push_subscription_sync_total",
    "Client sync calls to the subscription store",
    labelnames=["operation", "outcome"],
)


def set_app_info(version: str, environment: str) -> None:
    """Set the app_info metric values. Called once at startup."""
    APP_INFO.info({"version": version, "environment": environment})
