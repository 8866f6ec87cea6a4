"""
Prometheus metrics module for TutorHub.

Service operation timings come from ``@BaseService.measure_operation``;
domain counters track what the scheduling engine produced.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "tutorhub_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "tutorhub_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "tutorhub_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

occurrences_generated_total = Counter(
    "tutorhub_occurrences_generated_total",
    "Session occurrences created by template expansion",
    registry=REGISTRY,
)

alerts_created_total = Counter(
    "tutorhub_compliance_alerts_created_total",
    "Compliance alerts created by periodic scans",
    ["kind"],
    registry=REGISTRY,
)

invoices_generated_total = Counter(
    "tutorhub_invoices_generated_total",
    "Invoices created by the session balance trigger",
    ["status"],
    registry=REGISTRY,
)

side_effect_failures_total = Counter(
    "tutorhub_side_effect_failures_total",
    "Best-effort side effects that failed and were isolated",
    ["effect"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'OccurrenceLifecycleService')
            operation: Operation/method name (e.g., 'transition_occurrence')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_occurrences_generated(count: int) -> None:
        if count > 0:
            occurrences_generated_total.inc(count)

    @staticmethod
    def record_alerts_created(kind: str, count: int) -> None:
        if count > 0:
            alerts_created_total.labels(kind=kind).inc(count)

    @staticmethod
    def record_invoice_generated(status: str) -> None:
        invoices_generated_total.labels(status=status).inc()

    @staticmethod
    def record_side_effect_failure(effect: str) -> None:
        side_effect_failures_total.labels(effect=effect).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
