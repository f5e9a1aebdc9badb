"""Dataset (volume replica) operations carried out with the zfs tool."""

import logging
from typing import List

from ..config import base_config
from ..models.models import CStorVolumeReplica
from ..utils.errors import InvalidSpecError, ToolFailureError
from ..utils.runner import Runner

logger = logging.getLogger(__name__)

STATUS_DATASET_MISSING = "dataset does not exist"


def validate_replica(replica: CStorVolumeReplica) -> None:
    """Raise InvalidSpecError when the replica cannot be provisioned."""
    if not replica.spec.vol_name:
        raise InvalidSpecError("Volume name cannot be empty")
    if not replica.spec.capacity:
        raise InvalidSpecError("Capacity cannot be empty")


class DatasetExecutor:
    """Thin wrapper over ``zfs``."""

    def __init__(self, runner: Runner, operator: str = base_config.VOLUME_REPLICA_OPERATOR):
        self.runner = runner
        self.operator = operator

    def create_thin_volume(self, fq_name: str, capacity: str) -> None:
        """Create a sparse volume ``fq_name`` (pool/volume) of ``capacity``."""
        result = self.runner.run(self.operator, "create", "-s", "-V", capacity, fq_name)
        if not result.ok:
            logger.error(f"Unable to create volume {fq_name}: {result.output.strip()}")
            raise ToolFailureError(result.argv, result.returncode, result.output)
        logger.info(f"Volume creation successful: {fq_name}")

    def destroy(self, fq_name: str) -> None:
        result = self.runner.run(self.operator, "destroy", fq_name)
        if result.ok:
            logger.info(f"Destroyed volume {fq_name}")
            return
        if STATUS_DATASET_MISSING in result.output:
            logger.info(f"Volume {fq_name} already absent")
            return
        logger.error(f"Unable to destroy volume {fq_name}: {result.output.strip()}")
        raise ToolFailureError(result.argv, result.returncode, result.output)

    def list(self, pool_name: str) -> List[str]:
        """Fully qualified names of the volumes inside ``pool_name``.

        Parses ``zfs get volsize`` whose lines look like
        ``cstor-pool/vol1  volsize  10G  local``.
        """
        result = self.runner.run(self.operator, "get", "volsize")
        if not result.ok:
            raise ToolFailureError(result.argv, result.returncode, result.output)

        prefix = pool_name + "/"
        volumes = []
        for line in result.stdout.splitlines():
            fields = line.split()
            if len(fields) >= 2 and fields[0].startswith(prefix) and fields[1] == "volsize":
                volumes.append(fields[0])
        return volumes
