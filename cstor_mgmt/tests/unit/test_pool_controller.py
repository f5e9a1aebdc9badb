"""Unit tests for the CStorPool reconciler."""
import pytest

from cstor_mgmt.controller.common import EventReason, ImportedVolumes
from cstor_mgmt.controller.informer import AddEvent, DeleteEvent
from cstor_mgmt.controller.pool_controller import PoolController
from cstor_mgmt.models.models import Phase, QueueItem, QueueOperation
from cstor_mgmt.pool.pool import PoolExecutor
from cstor_mgmt.volumereplica.volumereplica import DatasetExecutor

from ..common.fixtures import make_pool, written_phases

CP1 = dict(pool_name="cp1", disks=("/dev/sdb",), cache_file="/tmp/cp1.cache")


@pytest.fixture
def imported_volumes():
    return ImportedVolumes()


@pytest.fixture
def controller(mock_informer, mock_resource_client, mock_recorder, script_runner, imported_volumes):
    c = PoolController(
        mock_informer, mock_resource_client,
        PoolExecutor(script_runner), DatasetExecutor(script_runner), imported_volumes,
        recorder=mock_recorder,
    )
    yield c
    c.queue.shut_down()


def reconcile_add(controller, mock_resource_client, pool):
    mock_resource_client.get.return_value = pool
    controller.handle_event(AddEvent(pool))
    controller.process_next_work_item()


class TestAdd:
    def test_import_succeeds(self, controller, mock_resource_client, script_runner):
        script_runner.on("zpool", "status", returncode=1, stderr="no pools available\n")
        script_runner.on("zpool", "status", stdout="  pool: cp1\n state: ONLINE\n")
        reconcile_add(controller, mock_resource_client, make_pool(**CP1))

        assert written_phases(mock_resource_client) == [Phase.ONLINE]
        assert script_runner.calls_for("zpool", "create") == []
        assert script_runner.calls_for("zpool", "import") == [["zpool", "import", "-c", "/tmp/cp1.cache", "cp1"]]
        assert controller.pool_executor.current_pool_name() == "cp1"
        assert controller.pool_ready.is_set()

    def test_import_missing_then_create(self, controller, mock_resource_client, script_runner, mock_recorder):
        script_runner.on("zpool", "import", returncode=1, stderr="cannot import 'cp1': no such pool available")
        reconcile_add(controller, mock_resource_client, make_pool(**CP1))

        assert written_phases(mock_resource_client) == [Phase.ONLINE]
        zpool_calls = [call for call in script_runner.calls if call[0] == "zpool"]
        assert zpool_calls == [
            ["zpool", "import", "-c", "/tmp/cp1.cache", "cp1"],
            ["zpool", "create", "-f", "-o", "cachefile=/tmp/cp1.cache", "cp1", "/dev/sdb"],
        ]
        assert mock_recorder.normal.call_args.args[1] == EventReason.CREATED

    def test_readd_of_online_pool_skips_import_and_create(self, controller, mock_resource_client, script_runner,
                                                         mock_recorder):
        script_runner.on("zpool", "status", stdout="  pool: cp1\n state: ONLINE\n")
        script_runner.on("zpool", "import", returncode=1,
                         stderr="cannot import 'cp1': a pool with that name already exists\n")
        reconcile_add(controller, mock_resource_client, make_pool(phase="Online", **CP1))

        assert written_phases(mock_resource_client) == [Phase.ONLINE]
        assert script_runner.calls_for("zpool", "import") == []
        assert script_runner.calls_for("zpool", "create") == []
        assert controller.queue.num_requeues(QueueItem("pool-1", QueueOperation.ADD)) == 0
        mock_recorder.warning.assert_not_called()

    def test_import_reporting_existing_pool_counts_as_imported(self, controller, mock_resource_client,
                                                               script_runner, mock_recorder):
        script_runner.on("zpool", "import", returncode=1,
                         stderr="cannot import 'cp1': a pool with that name already exists\n")
        reconcile_add(controller, mock_resource_client, make_pool(**CP1))

        assert written_phases(mock_resource_client) == [Phase.ONLINE]
        assert script_runner.calls_for("zpool", "create") == []
        assert mock_recorder.normal.call_args.args[1] == EventReason.IMPORTED

    def test_invalid_spec_goes_offline_without_tools(self, controller, mock_resource_client, script_runner):
        reconcile_add(controller, mock_resource_client, make_pool(pool_name=""))

        assert written_phases(mock_resource_client) == [Phase.OFFLINE]
        assert script_runner.calls == []
        assert controller.queue.num_requeues(QueueItem("pool-1", QueueOperation.ADD)) == 0

    def test_create_failure_goes_offline_and_requeues(self, controller, mock_resource_client, script_runner):
        script_runner.on("zpool", "import", returncode=1, stderr="no such pool")
        script_runner.on("zpool", "create", returncode=1, stderr="disk busy")
        reconcile_add(controller, mock_resource_client, make_pool(**CP1))

        assert written_phases(mock_resource_client) == [Phase.OFFLINE]
        assert controller.queue.num_requeues(QueueItem("pool-1", QueueOperation.ADD)) == 1
        assert not controller.pool_ready.is_set()

    def test_import_failure_records_import_reason(self, controller, mock_resource_client, script_runner,
                                                  mock_recorder):
        script_runner.on("zpool", "import", returncode=1, stderr="I/O error reading labels")
        reconcile_add(controller, mock_resource_client, make_pool(**CP1))

        assert written_phases(mock_resource_client) == [Phase.OFFLINE]
        assert script_runner.calls_for("zpool", "create") == []
        assert mock_recorder.warning.call_args.args[1] == EventReason.FAIL_IMPORT
        assert controller.queue.num_requeues(QueueItem("pool-1", QueueOperation.ADD)) == 1

    def test_create_failure_records_create_reason(self, controller, mock_resource_client, script_runner,
                                                  mock_recorder):
        script_runner.on("zpool", "import", returncode=1, stderr="no such pool")
        script_runner.on("zpool", "create", returncode=1, stderr="disk busy")
        reconcile_add(controller, mock_resource_client, make_pool(**CP1))

        assert mock_recorder.warning.call_args.args[1] == EventReason.FAIL_CREATE

    def test_imported_datasets_are_snapshotted(self, controller, mock_resource_client, script_runner, imported_volumes):
        script_runner.on("zfs", "get", "volsize", stdout="cp1/vol1  volsize  100M  local\n")
        reconcile_add(controller, mock_resource_client, make_pool(**CP1))

        assert imported_volumes.snapshot() == ["cp1/vol1"]


class TestOtherOperations:
    @pytest.mark.parametrize("operation", [QueueOperation.MODIFY, QueueOperation.PERIODIC_SYNC])
    def test_noop(self, controller, mock_resource_client, script_runner, operation):
        mock_resource_client.get.return_value = make_pool(**CP1)
        controller.enqueue("pool-1", operation)
        controller.process_next_work_item()

        assert script_runner.calls == []
        assert written_phases(mock_resource_client) == []

    def test_destroy(self, controller, mock_resource_client, script_runner):
        controller.handle_event(DeleteEvent(make_pool(**CP1)))
        controller.process_next_work_item()

        assert script_runner.calls == [["zpool", "destroy", "-f", "cp1"]]
        assert written_phases(mock_resource_client) == []
        assert len(controller.tombstones) == 0

    def test_destroy_failure(self, controller, mock_resource_client, script_runner):
        script_runner.on("zpool", "destroy", returncode=1, stderr="pool is busy")
        controller.handle_event(DeleteEvent(make_pool(**CP1)))
        controller.process_next_work_item()

        assert written_phases(mock_resource_client) == [Phase.DELETION_FAILED]
        assert controller.queue.num_requeues(QueueItem("pool-1", QueueOperation.DESTROY)) == 1
        assert controller.tombstones.get("pool-1") is not None
