"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking state machine
booking_transitions = Counter(
    'booking_transitions_total',
    'Booking lifecycle operations',
    ['action', 'result']  # action: accept, decline, ...; result: success, rejected
)

price_adjustments = Counter(
    'price_adjustments_total',
    'Price negotiation operations',
    ['action']  # proposed, approved, rejected
)

# Payment escrow
payment_operations = Counter(
    'payment_operations_total',
    'Payment escrow operations',
    ['operation', 'result']  # create_intent/verify/release; success, pending, duplicate, error
)

gateway_latency = Histogram(
    'payment_gateway_latency_seconds',
    'Payment gateway call latency',
    ['call'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Notifications
notification_deliveries = Counter(
    'notification_deliveries_total',
    'Best-effort notification deliveries',
    ['type', 'result']  # delivered, failed
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_transition(action: str, success: bool):
    result = "success" if success else "rejected"
    booking_transitions.labels(action=action, result=result).inc()


def record_price_adjustment(action: str):
    price_adjustments.labels(action=action).inc()


def record_payment_operation(operation: str, result: str):
    """Operation: create_intent, verify, release."""
    payment_operations.labels(operation=operation, result=result).inc()


def record_notification(notification_type: str, delivered: bool):
    result = "delivered" if delivered else "failed"
    notification_deliveries.labels(type=notification_type, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
