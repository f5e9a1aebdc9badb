"""Reconciles CStorVolumeReplica resources into thin datasets."""

import logging
import threading
from typing import Optional

from ..config import base_config
from ..models.models import CStorVolumeReplica, Phase, QueueOperation
from ..pool.pool import PoolExecutor
from ..utils.errors import CStorError, InvalidSpecError
from ..volumereplica.volumereplica import DatasetExecutor, validate_replica
from .base import BaseController
from .common import EventReason, ImportedVolumes, pool_name_handler

logger = logging.getLogger(__name__)


class ReplicaController(BaseController):
    name = "cstorvolumereplica"

    def __init__(self, informer, resource_client, pool_executor: PoolExecutor,
                 dataset_executor: DatasetExecutor, imported_volumes: ImportedVolumes,
                 pool_name_attempts: int = base_config.POOL_NAME_ATTEMPTS,
                 pool_name_interval: float = base_config.POOL_NAME_HANDLER_INTERVAL,
                 stop_event: Optional[threading.Event] = None,
                 recorder=None, queue=None, metrics=None):
        super().__init__(informer, resource_client, recorder=recorder, queue=queue, metrics=metrics)
        self.pool_executor = pool_executor
        self.dataset_executor = dataset_executor
        self.imported_volumes = imported_volumes
        self.pool_name_attempts = pool_name_attempts
        self.pool_name_interval = pool_name_interval
        self.stop_event = stop_event

    def reconcile(self, operation: QueueOperation, replica: CStorVolumeReplica) -> None:
        if operation == QueueOperation.ADD:
            self.add_replica(replica)
        else:
            # datasets are left in place on Modify, PeriodicSync and Destroy
            logger.debug(f"Nothing to do for {operation.value} of replica {replica.key}")

    def add_replica(self, replica: CStorVolumeReplica) -> None:
        try:
            validate_replica(replica)
        except InvalidSpecError as e:
            logger.error(f"Invalid replica {replica.key}: {e.message}")
            self.record_warning(replica, EventReason.FAIL_VALIDATE, e.message)
            self.set_phase(replica, Phase.OFFLINE)
            raise

        try:
            pool_name = pool_name_handler(
                self.pool_executor,
                attempts=self.pool_name_attempts,
                interval=self.pool_name_interval,
                stop_event=self.stop_event,
            )
            fq_name = f"{pool_name}/{replica.spec.vol_name}"
            logger.info(f"Provisioning {fq_name} for pool guid {replica.pool_guid or 'unset'}")
            if self.imported_volumes.take(fq_name):
                logger.info(f"Volume {fq_name} came with the imported pool, skipping create")
            else:
                self.dataset_executor.create_thin_volume(fq_name, replica.spec.capacity)
                self.record_normal(replica, EventReason.CREATED, f"Volume {fq_name} created")
        except CStorError as e:
            self.record_warning(replica, EventReason.FAIL_CREATE, e.message)
            self.set_phase(replica, Phase.OFFLINE)
            raise

        self.set_phase(replica, Phase.ONLINE)
