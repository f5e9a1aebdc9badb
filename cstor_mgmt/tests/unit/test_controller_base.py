"""Unit tests for event classification and the worker loop."""
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from cstor_mgmt.controller.base import BaseController, classify_update
from cstor_mgmt.controller.informer import AddEvent, DeleteEvent, UpdateEvent
from cstor_mgmt.models.models import QueueItem, QueueOperation
from cstor_mgmt.utils.errors import InvalidSpecError, ToolFailureError

from ..common.fixtures import make_pool


class RecordingController(BaseController):
    name = "recording"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reconciled = []
        self.error = None

    def reconcile(self, operation, obj):
        self.reconciled.append((operation, obj))
        if self.error is not None:
            raise self.error


@pytest.fixture
def controller(mock_informer, mock_resource_client):
    c = RecordingController(mock_informer, mock_resource_client)
    yield c
    c.queue.shut_down()


class TestClassifyUpdate:
    def test_status_only_change_is_dropped(self):
        old = make_pool(resource_version="5", phase="Init")
        new = make_pool(resource_version="6", phase="Online")
        assert classify_update(old, new) is None

    def test_status_only_change_with_same_version_is_dropped(self):
        old = make_pool(resource_version="5", phase="Init")
        new = make_pool(resource_version="5", phase="Online")
        assert classify_update(old, new) is None

    def test_same_version_is_periodic_sync(self):
        pool = make_pool(resource_version="5")
        assert classify_update(pool, pool) == QueueOperation.PERIODIC_SYNC

    def test_deletion_timestamp_is_destroy(self):
        old = make_pool(resource_version="5")
        new = make_pool(resource_version="6", deletion_timestamp="2024-01-01T00:00:00Z")
        assert classify_update(old, new) == QueueOperation.DESTROY

    def test_spec_change_is_modify(self):
        old = make_pool(resource_version="5")
        new = make_pool(resource_version="6", disks=("/dev/sdb", "/dev/sdc"))
        assert classify_update(old, new) == QueueOperation.MODIFY


class TestEventIngest:
    def test_registers_with_informer(self, controller, mock_informer):
        mock_informer.add_event_handler.assert_called_once_with(controller.handle_event)

    def test_add_event(self, controller):
        controller.handle_event(AddEvent(make_pool()))
        assert controller.queue.get() == (QueueItem("pool-1", QueueOperation.ADD), False)

    def test_status_only_update_is_not_enqueued(self, controller):
        old = make_pool(resource_version="5", phase="Init")
        new = make_pool(resource_version="5", phase="Online")
        controller.handle_event(UpdateEvent(old, new))
        assert len(controller.queue) == 0

    def test_delete_stashes_tombstone(self, controller):
        pool = make_pool()
        controller.handle_event(DeleteEvent(pool))
        assert controller.tombstones.get("pool-1") is pool
        assert controller.queue.get() == (QueueItem("pool-1", QueueOperation.DESTROY), False)


class TestWorker:
    def test_success_forgets(self, controller, mock_resource_client):
        pool = make_pool()
        mock_resource_client.get.return_value = pool
        controller.enqueue("pool-1", QueueOperation.ADD)

        assert controller.process_next_work_item() is True
        assert controller.reconciled == [(QueueOperation.ADD, pool)]
        assert controller.queue.num_requeues(QueueItem("pool-1", QueueOperation.ADD)) == 0

    def test_destroy_reads_tombstone(self, controller, mock_resource_client):
        pool = make_pool()
        controller.handle_event(DeleteEvent(pool))
        controller.process_next_work_item()

        mock_resource_client.get.assert_not_called()
        assert controller.reconciled == [(QueueOperation.DESTROY, pool)]
        assert controller.tombstones.get("pool-1") is None

    def test_retryable_error_requeues(self, controller, mock_resource_client):
        mock_resource_client.get.return_value = make_pool()
        controller.error = ToolFailureError(["zpool", "import", "cp1"], 1, "io error")
        controller.enqueue("pool-1", QueueOperation.ADD)

        controller.process_next_work_item()

        assert controller.queue.num_requeues(QueueItem("pool-1", QueueOperation.ADD)) == 1

    def test_invalid_spec_is_not_requeued(self, controller, mock_resource_client):
        mock_resource_client.get.return_value = make_pool()
        controller.error = InvalidSpecError("Poolname cannot be empty")
        controller.enqueue("pool-1", QueueOperation.ADD)

        controller.process_next_work_item()

        assert controller.queue.num_requeues(QueueItem("pool-1", QueueOperation.ADD)) == 0

    def test_not_found_forgets(self, controller, mock_resource_client):
        mock_resource_client.get.side_effect = ApiException(status=404, reason="Not Found")
        controller.enqueue("pool-1", QueueOperation.ADD)

        controller.process_next_work_item()

        assert controller.reconciled == []
        assert controller.queue.num_requeues(QueueItem("pool-1", QueueOperation.ADD)) == 0

    def test_unexpected_error_releases_key(self, controller, mock_resource_client):
        mock_resource_client.get.return_value = make_pool()
        controller.error = RuntimeError("bug")
        item = QueueItem("pool-1", QueueOperation.ADD)
        controller.enqueue(item.key, item.operation)

        controller.process_next_work_item()
        controller.queue.add(item)

        assert controller.queue.num_requeues(item) == 1
        assert controller.queue.get() == (item, False)

    def test_shutdown_stops_worker(self, controller):
        controller.queue.shut_down()
        assert controller.process_next_work_item() is False

    def test_metrics_recorded(self, mock_informer, mock_resource_client):
        metrics = MagicMock()
        c = RecordingController(mock_informer, mock_resource_client, metrics=metrics)
        mock_resource_client.get.return_value = make_pool()
        c.enqueue("pool-1", QueueOperation.ADD)
        c.process_next_work_item()
        c.queue.shut_down()
        metrics.record_reconcile.assert_called_once()
        assert metrics.record_reconcile.call_args.args[:2] == ("add", "success")
