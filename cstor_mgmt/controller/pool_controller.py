"""Reconciles CStorPool resources against the node's pool tool."""

import logging
import threading
from ..models.models import CStorPool, Phase, QueueOperation
from ..pool.pool import ImportResult, PoolExecutor
from ..utils.errors import InvalidSpecError, ToolFailureError
from ..volumereplica.volumereplica import DatasetExecutor
from .base import BaseController
from .common import EventReason, ImportedVolumes

logger = logging.getLogger(__name__)


class PoolController(BaseController):
    """Imports or creates the pool on Add and destroys it on Destroy.

    ``pool_ready`` is set after the first pool comes online so the
    supervisor can start watching it.
    """

    name = "cstorpool"

    def __init__(self, informer, resource_client, pool_executor: PoolExecutor,
                 dataset_executor: DatasetExecutor, imported_volumes: ImportedVolumes,
                 recorder=None, queue=None, metrics=None):
        super().__init__(informer, resource_client, recorder=recorder, queue=queue, metrics=metrics)
        self.pool_executor = pool_executor
        self.dataset_executor = dataset_executor
        self.imported_volumes = imported_volumes
        self.pool_ready = threading.Event()

    def reconcile(self, operation: QueueOperation, pool: CStorPool) -> None:
        if operation == QueueOperation.ADD:
            self.add_pool(pool)
        elif operation == QueueOperation.DESTROY:
            self.destroy_pool(pool)
        else:
            logger.debug(f"Nothing to do for {operation.value} of pool {pool.key}")

    def add_pool(self, pool: CStorPool) -> None:
        try:
            self.pool_executor.validate(pool)
        except InvalidSpecError as e:
            logger.error(f"Invalid pool {pool.key}: {e.message}")
            self.record_warning(pool, EventReason.FAIL_VALIDATE, e.message)
            self.set_phase(pool, Phase.OFFLINE)
            raise

        pool_name = pool.spec.pool_name
        try:
            if self.pool_executor.current_pool_name() == pool_name:
                logger.info(f"Pool {pool_name} is already imported")
            else:
                self.import_or_create(pool)
            volumes = self.dataset_executor.list(pool_name)
        except ToolFailureError:
            self.set_phase(pool, Phase.OFFLINE)
            raise

        self.imported_volumes.replace(volumes)
        if volumes:
            logger.info(f"Pool {pool_name} holds volumes: {', '.join(volumes)}")
        self.set_phase(pool, Phase.ONLINE)
        self.pool_ready.set()

    def import_or_create(self, pool: CStorPool) -> None:
        try:
            result = self.pool_executor.import_pool(pool)
        except ToolFailureError as e:
            self.record_warning(pool, EventReason.FAIL_IMPORT, e.message)
            raise
        if result == ImportResult.IMPORTED:
            self.record_normal(pool, EventReason.IMPORTED, f"Pool {pool.spec.pool_name} imported")
            return

        try:
            self.pool_executor.create(pool)
        except ToolFailureError as e:
            self.record_warning(pool, EventReason.FAIL_CREATE, e.message)
            raise
        self.record_normal(pool, EventReason.CREATED, f"Pool {pool.spec.pool_name} created")

    def destroy_pool(self, pool: CStorPool) -> None:
        try:
            self.pool_executor.destroy(pool.spec.pool_name)
        except ToolFailureError as e:
            self.record_warning(pool, EventReason.FAIL_DESTROY, e.message)
            self.set_phase(pool, Phase.DELETION_FAILED)
            raise
        self.record_normal(pool, EventReason.DESTROYED, f"Pool {pool.spec.pool_name} destroyed")

    def wait_until_ready(self, stop_event: threading.Event, poll: float = 1.0) -> bool:
        """Block until a pool is online; False if stopped first."""
        while not stop_event.is_set():
            if self.pool_ready.wait(poll):
                return True
        return False
