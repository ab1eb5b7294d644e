"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Lifecycle metrics
lifecycle_transitions = Counter(
    'lifecycle_transitions_total',
    'Lifecycle transitions executed by the coordinator',
    ['entity', 'transition', 'result']  # result: success, rejected
)

conflict_checks = Counter(
    'conflict_checks_total',
    'Interval conflict checks',
    ['pool', 'result']  # pool: booking, exam; result: clear, conflict
)

cascade_failures = Counter(
    'cascade_failures_total',
    'Dependent mutations that failed after the primary change succeeded',
    ['operation', 'step']
)

version_conflicts = Counter(
    'version_conflicts_total',
    'Compare-and-swap updates rejected due to concurrent modification',
    ['entity']
)

# Exam mode metrics
exam_mode_resets = Counter(
    'exam_mode_resets_total',
    'Exam Mode toggles (each one bulk-deletes all exams)'
)

exams_deleted = Counter(
    'exams_deleted_by_reset_total',
    'Exam rows removed by Exam Mode resets'
)

# Change notification metrics
change_events = Counter(
    'change_events_total',
    'Change events dispatched to observers',
    ['table', 'operation']
)

subscriber_errors = Counter(
    'change_subscriber_errors_total',
    'Change subscribers that raised while handling an event'
)

redis_publish_errors = Counter(
    'redis_publish_errors_total',
    'Failures publishing change events to Redis'
)

# HTTP metrics
request_latency = Histogram(
    'http_request_latency_seconds',
    'Request latency',
    ['method', 'route', 'status_code'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_transition(entity: str, transition: str, success: bool = True):
    """Record a lifecycle transition attempt."""
    result = "success" if success else "rejected"
    lifecycle_transitions.labels(entity=entity, transition=transition, result=result).inc()


def record_conflict_check(pool: str, conflict: bool):
    result = "conflict" if conflict else "clear"
    conflict_checks.labels(pool=pool, result=result).inc()


def record_cascade_failure(operation: str, step: str):
    cascade_failures.labels(operation=operation, step=step).inc()


def record_version_conflict(entity: str):
    version_conflicts.labels(entity=entity).inc()


def record_exam_mode_reset(deleted: int):
    exam_mode_resets.inc()
    exams_deleted.inc(deleted)
