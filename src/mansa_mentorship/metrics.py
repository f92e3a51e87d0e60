"""
Prometheus metrics for mentorship client operations.

Metrics live in a private registry so embedding applications can expose
them (or not) without colliding with their own default registry.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

REGISTRY = CollectorRegistry()

operation_duration_seconds = Histogram(
    "mansa_mentorship_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

operations_total = Counter(
    "mansa_mentorship_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "mansa_mentorship_errors_total",
    "Service operation errors by exception type",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)


def record_service_operation(
    service: str,
    operation: str,
    duration: float,
    status: str = "success",
    error_type: Optional[str] = None,
) -> None:
    """
    Record one measured operation.

    Args:
        service: Service class name (e.g. 'BookingWorkflow')
        operation: Operation name (e.g. 'confirm_booking')
        duration: Duration in seconds
        status: 'success' or 'error'
        error_type: Exception class name when status is 'error'
    """
    operation_duration_seconds.labels(service=service, operation=operation).observe(duration)
    operations_total.labels(service=service, operation=operation, status=status).inc()
    if status == "error" and error_type:
        errors_total.labels(service=service, operation=operation, error_type=error_type).inc()


def get_metrics() -> bytes:
    """Prometheus text exposition of the registry."""
    return generate_latest(REGISTRY)
