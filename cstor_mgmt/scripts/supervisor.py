"""Process supervision: wiring, startup ordering and shutdown."""

import logging
import signal
import socket
import sys
import threading
from typing import List, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..config import ControllerConfig, base_config
from ..controller.base import BaseController
from ..controller.common import ImportedVolumes
from ..controller.events import EventRecorder
from ..controller.informer import Informer
from ..controller.pool_controller import PoolController
from ..controller.replica_controller import ReplicaController
from ..controller.volume_controller import VolumeController
from ..kube.client import ResourceClient, load_kube_config
from ..models.models import CStorPool, CStorVolume, CStorVolumeReplica
from ..monitoring.metrics import set_daemon_ready, start_metrics_server
from ..pool.pool import PoolExecutor
from ..utils.errors import FatalError
from ..utils.runner import RealRunner, Runner
from ..volume.volume import VolumeTarget
from ..volumereplica.volumereplica import DatasetExecutor

logger = logging.getLogger(__name__)

POOL_MGMT = "cstor-pool-mgmt"
REPLICA_MGMT = "cstor-replica-mgmt"
VOLUME_MGMT = "cstor-volume-mgmt"

SHUTDOWN_TIMEOUT = 10  # seconds to wait for each worker


class Supervisor:
    """Runs the controllers of one binary until asked to stop.

    Args:
        component: one of POOL_MGMT, REPLICA_MGMT, VOLUME_MGMT
        cfg: loaded controller configuration
        runner: command runner for the storage tools
        custom_api: client for the custom resources; built from kubeconfig when omitted
        core_api: client for events; built from kubeconfig when omitted
    """

    def __init__(self, component: str, cfg: ControllerConfig,
                 runner: Optional[Runner] = None,
                 custom_api: Optional[client.CustomObjectsApi] = None,
                 core_api: Optional[client.CoreV1Api] = None,
                 stop_event: Optional[threading.Event] = None):
        if component not in (POOL_MGMT, REPLICA_MGMT, VOLUME_MGMT):
            raise ValueError(f"unknown component {component}")
        self.component = component
        self.cfg = cfg
        self.runner = runner or RealRunner()
        self.custom_api = custom_api
        self.core_api = core_api
        self.stop_event = stop_event or threading.Event()
        self.exit_code = 0

        self.informers: List[Informer] = []
        self.controllers: List[BaseController] = []
        self.pool_executor = PoolExecutor(self.runner)
        self.dataset_executor = DatasetExecutor(self.runner)
        self.imported_volumes = ImportedVolumes()
        self._signals = 0
        self._watchdog: Optional[threading.Thread] = None

    # Signals

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        self._signals += 1
        if self._signals > 1:
            logger.error("Received second shutdown signal, exiting immediately")
            sys.exit(1)
        logger.info(f"Received signal {signum}, shutting down")
        self.stop_event.set()

    # Startup

    def build_clients(self) -> None:
        if self.custom_api is None or self.core_api is None:
            load_kube_config(self.cfg.kubeconfig)
        if self.custom_api is None:
            self.custom_api = client.CustomObjectsApi()
        if self.core_api is None:
            self.core_api = client.CoreV1Api()

    def resource_types(self):
        if self.component == POOL_MGMT:
            return [CStorPool, CStorVolumeReplica]
        if self.component == REPLICA_MGMT:
            return [CStorVolumeReplica]
        return [CStorVolume]

    def wait_for_resources(self, resource_clients: List[ResourceClient],
                           interval: float = base_config.CRD_RETRY_INTERVAL) -> bool:
        """Block until every resource kind can be listed; False if stopped first."""
        for resource_client in resource_clients:
            kind = resource_client.kind.kind
            while not self.stop_event.is_set():
                try:
                    resource_client.list(limit=1)
                    logger.info(f"{kind} resource is available")
                    break
                except ApiException as e:
                    logger.error(f"{kind} resource not found. Retrying after {interval}s, err: {e.status} {e.reason}")
                except Exception as e:
                    logger.error(f"Unable to list {kind}. Retrying after {interval}s, err: {str(e)}")
                self.stop_event.wait(interval)
        return not self.stop_event.is_set()

    def wait_for_daemons(self) -> bool:
        if self.component == VOLUME_MGMT:
            target = self._volume_target()
            ready = target.wait_for_daemon(self.stop_event)
            set_daemon_ready("istgt", ready)
            return ready
        ready = self.pool_executor.wait_for_daemon(self.stop_event)
        set_daemon_ready("zrepl", ready)
        return ready

    def _volume_target(self) -> VolumeTarget:
        return VolumeTarget(
            self.runner,
            conf_path=self.cfg.istgt_conf_path,
            sock_path=self.cfg.istgt_ctl_sock,
            storage_dir=self.cfg.storage_dir,
        )

    def build_controllers(self, resource_clients: List[ResourceClient]) -> None:
        recorder = EventRecorder(self.component, api=self.core_api, host=socket.gethostname())
        for resource_client in resource_clients:
            informer = Informer(resource_client, self.cfg.resync_interval)
            self.informers.append(informer)
            resource = resource_client.resource
            if resource is CStorPool:
                controller = PoolController(
                    informer, resource_client, self.pool_executor, self.dataset_executor,
                    self.imported_volumes, recorder=recorder,
                )
            elif resource is CStorVolumeReplica:
                controller = ReplicaController(
                    informer, resource_client, self.pool_executor, self.dataset_executor,
                    self.imported_volumes,
                    pool_name_attempts=self.cfg.pool_name_attempts,
                    stop_event=self.stop_event,
                    recorder=recorder,
                )
            else:
                if not self.cfg.volume_id:
                    raise FatalError(f"{base_config.CSTOR_VOLUME_ID_ENV} is not set")
                controller = VolumeController(
                    informer, resource_client, self._volume_target(), self.cfg.volume_id,
                    recorder=recorder,
                )
            self.controllers.append(controller)

    def start_informers(self) -> None:
        for informer in self.informers:
            informer.start(self.stop_event)
        for informer in self.informers:
            if not informer.wait_for_cache_sync(self.cfg.cache_sync_timeout):
                if self.stop_event.is_set():
                    return
                raise FatalError(f"Timed out waiting for {informer.kind} cache to sync")

    def start_pool_watchdog(self) -> None:
        pool_controllers = [c for c in self.controllers if isinstance(c, PoolController)]
        if not pool_controllers:
            return
        self._watchdog = threading.Thread(
            target=self._watch_pool, args=(pool_controllers[0],), name="pool-watchdog", daemon=True
        )
        self._watchdog.start()

    def _watch_pool(self, controller: PoolController) -> None:
        if not controller.wait_until_ready(self.stop_event):
            return
        if self.pool_executor.watch_pool(self.stop_event):
            logger.error("Pool is no longer healthy, stopping so the pod restarts")
            set_daemon_ready("zrepl", False)
            self.exit_code = 1
            self.stop_event.set()

    # Main loop

    def run(self) -> int:
        """Start everything, block until stopped, then shut down.

        Returns the process exit status.

        Raises:
            FatalError: startup could not complete
        """
        self.build_clients()
        start_metrics_server(self.cfg.metrics_port)

        resource_clients = [ResourceClient(r, api=self.custom_api) for r in self.resource_types()]
        if not self.wait_for_resources(resource_clients):
            return self.exit_code
        if not self.wait_for_daemons():
            return self.exit_code

        self.build_controllers(resource_clients)
        try:
            self.start_informers()
            if self.stop_event.is_set():
                return self.exit_code
            for controller in self.controllers:
                controller.run(self.cfg.workers, self.stop_event)
            self.start_pool_watchdog()
            logger.info(f"{self.component} started")
            self.stop_event.wait()
        finally:
            self.shutdown()
        return self.exit_code

    def shutdown(self) -> None:
        logger.info(f"Shutting down {self.component}")
        self.stop_event.set()
        for controller in self.controllers:
            controller.shutdown(SHUTDOWN_TIMEOUT)
        for informer in self.informers:
            informer.stop()
        if self._watchdog is not None:
            self._watchdog.join(SHUTDOWN_TIMEOUT)
