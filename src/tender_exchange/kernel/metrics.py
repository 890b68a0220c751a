"""
Prometheus metrics collection for Tender Exchange.

Counts lifecycle transitions and access denials, and times every operation.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Histogram, start_http_server

# ============================================================================
# Tender Lifecycle Metrics
# ============================================================================

tenders_created_total = Counter(
    "tender_exchange_tenders_created_total",
    "Total number of tenders created",
)

tenders_closed_total = Counter(
    "tender_exchange_tenders_closed_total",
    "Total number of tenders closed for applications",
)

tenders_expired_total = Counter(
    "tender_exchange_tenders_expired_total",
    "Total number of tenders whose expiry was persisted by a sweep",
)

# ============================================================================
# Application Workflow Metrics
# ============================================================================

applications_submitted_total = Counter(
    "tender_exchange_applications_submitted_total",
    "Total number of applications submitted",
)

application_decisions_total = Counter(
    "tender_exchange_application_decisions_total",
    "Total number of application decisions",
    ["decision"],  # accepted, rejected
)

duplicate_applications_total = Counter(
    "tender_exchange_duplicate_applications_total",
    "Submissions rejected as duplicates",
    ["detected_by"],  # precheck, constraint
)

# ============================================================================
# Access Metrics
# ============================================================================

access_denied_total = Counter(
    "tender_exchange_access_denied_total",
    "Authorization failures by action",
    ["action"],
)

# ============================================================================
# Operation Metrics
# ============================================================================

operation_duration_seconds = Histogram(
    "tender_exchange_operation_duration_seconds",
    "Duration of core operations in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

operations_total = Counter(
    "tender_exchange_operations_total",
    "Total number of core operations",
    ["operation", "status"],  # status: success, failure
)

P = ParamSpec("P")
R = TypeVar("R")


def track_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track operation duration and outcome.

    Args:
        operation: Operation name used as the metric label
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                operation_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start
                )
                operations_total.labels(operation=operation, status=status).inc()

        return wrapper

    return decorator


def start_metrics_server(port: int = 9090) -> None:
    """Start Prometheus metrics HTTP server."""
    start_http_server(port)
