"""Unit tests for the Supervisor and the command line."""
import os
import signal
import threading
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException

from cstor_mgmt.config import ControllerConfig
from cstor_mgmt.controller.pool_controller import PoolController
from cstor_mgmt.controller.replica_controller import ReplicaController
from cstor_mgmt.controller.volume_controller import VolumeController
from cstor_mgmt.kube.client import ResourceClient
from cstor_mgmt.models.models import CStorPool, CStorVolumeReplica
from cstor_mgmt.scripts import cli
from cstor_mgmt.scripts.supervisor import POOL_MGMT, REPLICA_MGMT, VOLUME_MGMT, Supervisor
from cstor_mgmt.utils.errors import FatalError

from ..common.fakes import ScriptRunner


def make_config(**overrides):
    values = dict(
        kubeconfig=None, workers=1, resync_interval=30, cache_sync_timeout=2,
        pool_name_attempts=1, volume_id="x", istgt_conf_path="/tmp/istgt.conf",
        istgt_ctl_sock="/tmp/missing.sock", storage_dir="/tmp/cstor", metrics_port=0,
        log_level="INFO",
    )
    values.update(overrides)
    return ControllerConfig(**values)


@pytest.fixture
def custom_api():
    api = MagicMock()
    api.list_cluster_custom_object.return_value = {"metadata": {"resourceVersion": "1"}, "items": []}
    return api


def make_supervisor(component, custom_api, runner=None, **overrides):
    return Supervisor(component, make_config(**overrides), runner=runner or ScriptRunner(),
                      custom_api=custom_api, core_api=MagicMock())


class TestWiring:
    @pytest.mark.parametrize("component,expected", [
        (POOL_MGMT, [PoolController, ReplicaController]),
        (REPLICA_MGMT, [ReplicaController]),
        (VOLUME_MGMT, [VolumeController]),
    ])
    def test_controllers_per_component(self, custom_api, component, expected):
        supervisor = make_supervisor(component, custom_api)
        clients = [ResourceClient(r, api=custom_api) for r in supervisor.resource_types()]
        supervisor.build_controllers(clients)
        assert [type(c) for c in supervisor.controllers] == expected
        for controller in supervisor.controllers:
            controller.queue.shut_down()

    def test_pool_and_replica_share_imported_volumes(self, custom_api):
        supervisor = make_supervisor(POOL_MGMT, custom_api)
        supervisor.build_controllers([ResourceClient(CStorPool, api=custom_api),
                                      ResourceClient(CStorVolumeReplica, api=custom_api)])
        pool, replica = supervisor.controllers
        assert pool.imported_volumes is replica.imported_volumes
        for controller in supervisor.controllers:
            controller.queue.shut_down()

    def test_volume_without_identity_is_fatal(self, custom_api):
        supervisor = make_supervisor(VOLUME_MGMT, custom_api, volume_id="")
        clients = [ResourceClient(r, api=custom_api) for r in supervisor.resource_types()]
        with pytest.raises(FatalError):
            supervisor.build_controllers(clients)

    def test_unknown_component(self, custom_api):
        with pytest.raises(ValueError):
            make_supervisor("cstor-unknown", custom_api)


class TestStartup:
    def test_wait_for_resources_retries(self, custom_api):
        custom_api.list_cluster_custom_object.side_effect = [
            ApiException(status=404, reason="Not Found"),
            {"items": []},
        ]
        supervisor = make_supervisor(REPLICA_MGMT, custom_api)
        client = ResourceClient(CStorVolumeReplica, api=custom_api)
        assert supervisor.wait_for_resources([client], interval=0) is True
        assert custom_api.list_cluster_custom_object.call_count == 2

    def test_wait_for_resources_stops(self, custom_api):
        custom_api.list_cluster_custom_object.side_effect = ApiException(status=404, reason="Not Found")
        supervisor = make_supervisor(REPLICA_MGMT, custom_api)
        supervisor.stop_event.set()
        client = ResourceClient(CStorVolumeReplica, api=custom_api)
        assert supervisor.wait_for_resources([client], interval=0) is False

    def test_cache_sync_timeout_is_fatal(self, custom_api):
        supervisor = make_supervisor(REPLICA_MGMT, custom_api, cache_sync_timeout=0)
        informer = MagicMock()
        informer.wait_for_cache_sync.return_value = False
        supervisor.informers = [informer]
        with pytest.raises(FatalError):
            supervisor.start_informers()

    def test_run_until_stopped(self, custom_api):
        runner = ScriptRunner()
        runner.on("zpool", "status", stdout="no pools available\n")
        supervisor = make_supervisor(POOL_MGMT, custom_api, runner=runner)

        def idle_stream(*args, **kwargs):
            supervisor.stop_event.wait(0.05)
            return iter([])

        with patch("cstor_mgmt.controller.informer.watch.Watch") as watch_cls:
            watch_cls.return_value.stream.side_effect = idle_stream
            threading.Timer(0.3, supervisor.stop_event.set).start()
            assert supervisor.run() == 0

        assert all(informer.has_synced() for informer in supervisor.informers)
        assert all(controller.queue.shutting_down() for controller in supervisor.controllers)

    def test_pool_watchdog_stops_process(self, custom_api):
        runner = ScriptRunner()
        runner.on("zpool", "status", returncode=1, stderr="zrepl not running")
        supervisor = make_supervisor(POOL_MGMT, custom_api, runner=runner)
        controller = MagicMock(spec=PoolController)
        controller.wait_until_ready.return_value = True
        with patch.object(supervisor.pool_executor, "watch_pool", return_value=True):
            supervisor._watch_pool(controller)
        assert supervisor.exit_code == 1
        assert supervisor.stop_event.is_set()


class TestSignals:
    def test_first_signal_stops(self, custom_api):
        supervisor = make_supervisor(POOL_MGMT, custom_api)
        supervisor._handle_signal(signal.SIGTERM, None)
        assert supervisor.stop_event.is_set()

    def test_second_signal_exits(self, custom_api):
        supervisor = make_supervisor(POOL_MGMT, custom_api)
        supervisor._handle_signal(signal.SIGTERM, None)
        with pytest.raises(SystemExit) as exc:
            supervisor._handle_signal(signal.SIGINT, None)
        assert exc.value.code == 1


class TestCli:
    def test_requires_start(self, capsys):
        assert cli.run(POOL_MGMT, []) == 1

    def test_start_runs_supervisor(self):
        with patch("cstor_mgmt.scripts.cli.Supervisor") as supervisor_cls:
            supervisor_cls.return_value.run.return_value = 0
            assert cli.run(VOLUME_MGMT, ["start", "--kubeconfig", "/tmp/kc", "--workers", "3"]) == 0

        component, cfg = supervisor_cls.call_args.args
        assert component == VOLUME_MGMT
        assert cfg.kubeconfig == "/tmp/kc"
        assert cfg.workers == 3
        supervisor_cls.return_value.install_signal_handlers.assert_called_once()

    def test_fatal_error_exits_one(self):
        with patch("cstor_mgmt.scripts.cli.Supervisor") as supervisor_cls:
            supervisor_cls.return_value.run.side_effect = FatalError("no kubeconfig")
            assert cli.run(REPLICA_MGMT, ["start"]) == 1

    def test_bad_configuration_exits_one(self):
        with patch.dict(os.environ, {"CSTOR_WORKERS": "two"}), \
                patch("cstor_mgmt.scripts.cli.Supervisor") as supervisor_cls:
            assert cli.run(POOL_MGMT, ["start"]) == 1
        supervisor_cls.assert_not_called()

    def test_zero_workers_flag_exits_one(self):
        with patch("cstor_mgmt.scripts.cli.Supervisor") as supervisor_cls:
            assert cli.run(POOL_MGMT, ["start", "--workers", "0"]) == 1
        supervisor_cls.assert_not_called()

    def test_entry_point_exit_status(self):
        with patch("cstor_mgmt.scripts.cli.run", return_value=0):
            with pytest.raises(SystemExit) as exc:
                cli.pool_mgmt_main(["start"])
        assert exc.value.code == 0
