"""Shared watch-queue-reconcile machinery for the cStor controllers."""

import logging
import threading
from typing import List, Optional

from kubernetes.client.rest import ApiException

from ..kube.client import ResourceClient, is_not_found
from ..models.models import CustomResource, Phase, QueueItem, QueueOperation
from ..monitoring.metrics import ControllerMetrics, measure_reconcile
from ..utils.errors import CStorError
from .events import EventRecorder
from .informer import AddEvent, DeleteEvent, Event, Informer, TombstoneIndex, UpdateEvent
from .workqueue import RateLimitingQueue

logger = logging.getLogger(__name__)


def classify_update(old: CustomResource, new: CustomResource) -> Optional[QueueOperation]:
    """Decide what an update event means; None drops it.

    Status-only changes are our own writes echoing back. An unchanged
    resource version is an informer resync.
    """
    if old.only_status_changed(new):
        return None
    if new.metadata.resource_version == old.metadata.resource_version:
        return QueueOperation.PERIODIC_SYNC
    if new.metadata.deletion_timestamp:
        return QueueOperation.DESTROY
    return QueueOperation.MODIFY


class BaseController:
    """Feeds informer events into a work queue and drains it with workers.

    Subclasses implement :meth:`reconcile`. Errors raised from it decide
    what happens to the item: a retryable :class:`CStorError` or an
    unexpected exception is re-added with back-off, a non-retryable one is
    forgotten, a 404 from the API server is forgotten.
    """

    name = "controller"

    def __init__(self, informer: Informer, resource_client: ResourceClient,
                 recorder: Optional[EventRecorder] = None,
                 queue: Optional[RateLimitingQueue] = None,
                 metrics: Optional[ControllerMetrics] = None):
        self.informer = informer
        self.client = resource_client
        self.recorder = recorder
        self.queue = queue or RateLimitingQueue(self.name)
        self.metrics = metrics or ControllerMetrics(self.name)
        self.tombstones = TombstoneIndex()
        self._workers: List[threading.Thread] = []
        informer.add_event_handler(self.handle_event)

    # Event ingest

    def admit(self, obj: CustomResource) -> bool:
        """Whether events for ``obj`` belong to this controller."""
        return True

    def handle_event(self, event: Event) -> None:
        if isinstance(event, AddEvent):
            if not self.admit(event.obj):
                self.metrics.record_dropped_event("not_admitted")
                return
            self.enqueue(event.obj.key, QueueOperation.ADD)
        elif isinstance(event, UpdateEvent):
            if not self.admit(event.new):
                self.metrics.record_dropped_event("not_admitted")
                return
            operation = classify_update(event.old, event.new)
            if operation is None:
                logger.debug(f"Only status changed for {event.new.key}")
                self.metrics.record_dropped_event("status_only")
                return
            self.enqueue(event.new.key, operation)
        elif isinstance(event, DeleteEvent):
            self.tombstones.add(event.obj)
            self.enqueue(event.obj.key, QueueOperation.DESTROY)

    def enqueue(self, key: str, operation: QueueOperation) -> None:
        logger.info(f"{self.name}: queued {operation.value} for {key}")
        self.queue.add(QueueItem(key, operation))
        self.metrics.update_queue_depth(len(self.queue))

    # Workers

    def run(self, workers: int, stop_event: threading.Event) -> None:
        """Start ``workers`` threads draining the queue."""
        logger.info(f"Starting {workers} {self.name} workers")
        for i in range(workers):
            worker = threading.Thread(
                target=self.run_worker, name=f"{self.name}-worker-{i}", daemon=True
            )
            worker.start()
            self._workers.append(worker)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self.queue.shut_down()
        for worker in self._workers:
            worker.join(timeout)
        logger.info(f"Shut down {self.name} workers")

    def run_worker(self) -> None:
        while self.process_next_work_item():
            pass

    def process_next_work_item(self) -> bool:
        """Handle one queue item; False once the queue is shut down."""
        item, shutdown = self.queue.get()
        if shutdown:
            return False
        self.metrics.update_queue_depth(len(self.queue))
        try:
            self._process(item)
        finally:
            self.queue.done(item)
        return True

    def _process(self, item: QueueItem) -> None:
        try:
            self.sync_handler(item)
        except ApiException as e:
            if is_not_found(e):
                logger.info(f"{self.name}: {item.key} no longer exists, dropping {item.operation.value}")
                self._forget(item)
                return
            logger.error(f"{self.name}: API error handling {item.operation.value} {item.key}: {e.status} {e.reason}")
            self._requeue(item)
        except CStorError as e:
            if e.retryable:
                logger.error(f"{self.name}: error syncing {item.key}: {e.message}, requeuing")
                self._requeue(item)
            else:
                logger.error(f"{self.name}: error syncing {item.key}: {e.message}, not retrying")
                self._forget(item)
        except Exception:
            logger.exception(f"{self.name}: unexpected error syncing {item.key}, requeuing")
            self._requeue(item)
        else:
            self._forget(item)

    def _requeue(self, item: QueueItem) -> None:
        self.queue.add_rate_limited(item)
        self.metrics.record_requeue()

    def _forget(self, item: QueueItem) -> None:
        self.queue.forget(item)
        if item.operation == QueueOperation.DESTROY:
            self.tombstones.remove(item.key)

    @measure_reconcile
    def sync_handler(self, item: QueueItem) -> None:
        obj = self.lookup(item)
        logger.info(f"{self.name}: handling {item.operation.value} for {item.key}")
        self.reconcile(item.operation, obj)

    def lookup(self, item: QueueItem) -> CustomResource:
        """Current object for ``item``; Destroy prefers the last state seen before deletion."""
        if item.operation == QueueOperation.DESTROY:
            tombstone = self.tombstones.get(item.key)
            if tombstone is not None:
                return tombstone
        return self.client.get(item.key)

    def reconcile(self, operation: QueueOperation, obj: CustomResource) -> None:
        raise NotImplementedError

    # Helpers for subclasses

    def set_phase(self, obj: CustomResource, phase: Phase) -> None:
        self.client.update_phase(obj.key, phase)

    def record_normal(self, obj: CustomResource, reason: str, message: str) -> None:
        if self.recorder is not None:
            self.recorder.normal(obj, reason, message)

    def record_warning(self, obj: CustomResource, reason: str, message: str) -> None:
        if self.recorder is not None:
            self.recorder.warning(obj, reason, message)
