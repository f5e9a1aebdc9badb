from prometheus_client import Counter, Histogram, Gauge, start_http_server
from functools import wraps
import logging
import time

logger = logging.getLogger(__name__)

# Reconcile Metrics
RECONCILE_TOTAL = Counter(
    'cstor_reconcile_total',
    'Total number of reconciles',
    ['controller', 'operation', 'result']
)

RECONCILE_LATENCY = Histogram(
    'cstor_reconcile_latency_seconds',
    'Reconcile latency in seconds',
    ['controller', 'operation'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 150.0)
)

# Queue Metrics
QUEUE_DEPTH = Gauge(
    'cstor_workqueue_depth',
    'Number of items waiting in the work queue',
    ['controller']
)

QUEUE_REQUEUES = Counter(
    'cstor_workqueue_requeues_total',
    'Number of rate limited requeues',
    ['controller']
)

# Event ingest
EVENTS_DROPPED = Counter(
    'cstor_events_dropped_total',
    'Informer events dropped before reaching the queue',
    ['controller', 'reason']
)

# Daemon health
DAEMON_READY = Gauge(
    'cstor_daemon_ready',
    'Daemon readiness (1 for ready, 0 for not ready)',
    ['daemon']
)


class ControllerMetrics:
    def __init__(self, controller):
        self.controller = controller

    def record_reconcile(self, operation, result, duration):
        """Record a reconcile with its latency and result"""
        RECONCILE_TOTAL.labels(
            controller=self.controller,
            operation=operation,
            result=result
        ).inc()

        RECONCILE_LATENCY.labels(
            controller=self.controller,
            operation=operation
        ).observe(duration)

    def update_queue_depth(self, depth):
        QUEUE_DEPTH.labels(controller=self.controller).set(depth)

    def record_requeue(self):
        QUEUE_REQUEUES.labels(controller=self.controller).inc()

    def record_dropped_event(self, reason):
        EVENTS_DROPPED.labels(controller=self.controller, reason=reason).inc()


def set_daemon_ready(daemon, ready):
    """Update daemon readiness"""
    DAEMON_READY.labels(daemon=daemon).set(1 if ready else 0)


def start_metrics_server(port):
    """Expose /metrics on ``port``; 0 disables the endpoint."""
    if not port:
        return False
    start_http_server(port)
    logger.info(f"Metrics server listening on port {port}")
    return True


def measure_reconcile(func):
    """Decorator to measure the duration of ``sync_handler(self, item)``"""
    @wraps(func)
    def wrapper(self, item, *args, **kwargs):
        start_time = time.time()
        status = 'error'
        try:
            result = func(self, item, *args, **kwargs)
            status = 'success'
            return result
        finally:
            duration = time.time() - start_time
            metrics = getattr(self, 'metrics', None)
            if metrics is not None:
                metrics.record_reconcile(item.operation.value, status, duration)
    return wrapper
