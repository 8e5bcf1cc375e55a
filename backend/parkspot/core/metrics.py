"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total book/cancel attempts',
    ['action', 'status']  # action: book, cancel; status: success, conflict, forbidden, not_found, transient, indeterminate
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Book/cancel latency',
    ['action'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0]
)

# Live update metrics
live_updates_published = Counter(
    'live_updates_published_total',
    'Spot change events published',
    ['backend']
)

live_updates_delivered = Counter(
    'live_updates_delivered_total',
    'Spot change events handed to subscriber callbacks'
)

live_updates_dropped = Counter(
    'live_updates_dropped_total',
    'Spot change events dropped because a subscriber queue was full'
)

live_update_errors = Counter(
    'live_update_errors_total',
    'Failures while publishing or delivering spot change events',
    ['stage']  # publish, deliver
)

active_subscriptions = Gauge(
    'live_update_active_subscriptions',
    'Number of registered live update subscriptions'
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


# Convenience functions for instrumentation
def record_reservation(action: str, status: str, seconds: float):
    """Record a book/cancel outcome and its latency."""
    reservation_attempts.labels(action=action, status=status).inc()
    reservation_latency.labels(action=action).observe(seconds)


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
