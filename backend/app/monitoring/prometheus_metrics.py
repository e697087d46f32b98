"""
Prometheus metrics for the dance school platform.

Service latency is fed by ``BaseService.measure_operation``; ledger outcomes
(bookings, cancellations, payment webhooks) are recorded explicitly by the
services that produce them.
"""

from typing import Optional, cast

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
    "dancehub_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "dancehub_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "dancehub_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_attempts_total = Counter(
    "dancehub_booking_attempts_total",
    "Booking attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

booking_cancellations_total = Counter(
    "dancehub_booking_cancellations_total",
    "Booking cancellations by actor role",
    ["actor_role"],
    registry=REGISTRY,
)

payment_webhooks_total = Counter(
    "dancehub_payment_webhooks_total",
    "Payment webhook deliveries by provider and result",
    ["provider", "result"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Records application metrics and renders the exposition payload."""

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
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'book')
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
    def record_booking_attempt(outcome: str) -> None:
        """outcome is one of created, full, cancelled_class, no_valid_pass, already_booked."""
        booking_attempts_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_booking_cancellation(actor_role: str) -> None:
        booking_cancellations_total.labels(actor_role=actor_role).inc()

    @staticmethod
    def record_payment_webhook(provider: str, result: str) -> None:
        payment_webhooks_total.labels(provider=provider, result=result).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
