"""Pool operations carried out with the external pool tool.

Every call is synchronous and runs the tool to completion. Non-zero exits
are turned into :class:`ToolFailureError`; retrying is left to the caller.
"""

import logging
import threading
from enum import Enum
from typing import List, Optional

from ..config import base_config
from ..models.models import CStorPool, PoolType
from ..utils.errors import InvalidSpecError, ToolFailureError
from ..utils.runner import Runner, RunResult

logger = logging.getLogger(__name__)

STATUS_NO_SUCH_POOL = "no such pool"
STATUS_CANNOT_IMPORT = "cannot import"
STATUS_ALREADY_EXISTS = "already exists"
STATUS_NO_POOLS_AVAILABLE = "no pools available"

POOL_LABEL = "pool:"


class ImportResult(Enum):
    IMPORTED = "imported"
    NOT_PRESENT = "not_present"


class PoolExecutor:
    """Thin wrapper over ``zpool``.

    Args:
        runner: command runner used for every invocation
        operator: name or path of the pool tool binary
    """

    def __init__(self, runner: Runner, operator: str = base_config.POOL_OPERATOR):
        self.runner = runner
        self.operator = operator

    def validate(self, pool: CStorPool) -> None:
        """Check the pool spec before any tool is invoked.

        Raises:
            InvalidSpecError: pool name missing, no disks, or a disk count the
                pool type cannot use
        """
        spec = pool.spec
        if not spec.pool_name:
            raise InvalidSpecError("Poolname cannot be empty")
        if len(spec.disks) < 1:
            raise InvalidSpecError("Disk name(s) cannot be empty")

        try:
            pool_type = PoolType(spec.pool_type or PoolType.STRIPED.value)
        except ValueError:
            raise InvalidSpecError(f"Unknown poolType {spec.pool_type!r}")

        if pool_type == PoolType.MIRRORED and len(spec.disks) % 2 != 0:
            raise InvalidSpecError("Mirror poolType needs even number of disks")
        if pool_type == PoolType.RAIDZ and len(spec.disks) < 2:
            raise InvalidSpecError("raidz poolType needs at least 2 disks")
        if pool_type == PoolType.RAIDZ2 and len(spec.disks) < 3:
            raise InvalidSpecError("raidz2 poolType needs at least 3 disks")

    def import_pool(self, pool: CStorPool) -> ImportResult:
        """Import the pool if it is already present on the node's disks."""
        args = ["import"]
        if pool.spec.cache_file:
            args += ["-c", pool.spec.cache_file]
        args.append(pool.spec.pool_name)

        result = self.runner.run(self.operator, *args)
        if result.ok:
            logger.info(f"Imported pool {pool.spec.pool_name}")
            return ImportResult.IMPORTED

        output = result.output.lower()
        if STATUS_ALREADY_EXISTS in output:
            logger.info(f"Pool {pool.spec.pool_name} is already imported")
            return ImportResult.IMPORTED
        if STATUS_NO_SUCH_POOL in output or STATUS_CANNOT_IMPORT in output:
            logger.info(f"Pool {pool.spec.pool_name} not present for import")
            return ImportResult.NOT_PRESENT

        logger.error(f"Unable to import pool {pool.spec.pool_name}: {result.output.strip()}")
        raise ToolFailureError(result.argv, result.returncode, result.output)

    def create(self, pool: CStorPool) -> None:
        """Create a new pool from the spec's disks."""
        args = ["create", "-f"]
        if pool.spec.cache_file:
            args += ["-o", "cachefile=" + pool.spec.cache_file]
        args.append(pool.spec.pool_name)
        args += self._vdevs(pool)

        logger.debug(f"Pool create args: {args}")
        result = self.runner.run(self.operator, *args)
        if not result.ok:
            logger.error(f"Unable to create pool {pool.spec.pool_name}: {result.output.strip()}")
            raise ToolFailureError(result.argv, result.returncode, result.output)
        logger.info(f"Created pool {pool.spec.pool_name}")

    @staticmethod
    def _vdevs(pool: CStorPool) -> List[str]:
        disks = list(pool.spec.disks)
        pool_type = pool.spec.pool_type or PoolType.STRIPED.value
        if pool_type == PoolType.MIRRORED.value:
            # mirror d0 d1 mirror d2 d3 ...
            vdevs = []
            for i, disk in enumerate(disks):
                if i % 2 == 0:
                    vdevs.append("mirror")
                vdevs.append(disk)
            return vdevs
        if pool_type in (PoolType.RAIDZ.value, PoolType.RAIDZ2.value):
            return [pool_type] + disks
        return disks

    def destroy(self, pool_name: str) -> None:
        """Destroy a pool; a pool that is already gone counts as destroyed."""
        result = self.runner.run(self.operator, "destroy", "-f", pool_name)
        if result.ok:
            logger.info(f"Destroyed pool {pool_name}")
            return
        if STATUS_NO_SUCH_POOL in result.output.lower():
            logger.info(f"Pool {pool_name} already absent")
            return
        logger.error(f"Unable to destroy pool {pool_name}: {result.output.strip()}")
        raise ToolFailureError(result.argv, result.returncode, result.output)

    def status(self) -> RunResult:
        return self.runner.run(self.operator, "status")

    def current_pool_name(self) -> Optional[str]:
        """Name of the pool active on this node, or None."""
        result = self.status()
        if not result.ok:
            return None
        for line in result.stdout.splitlines():
            label, sep, value = line.strip().partition(":")
            if sep and label.strip() + ":" == POOL_LABEL:
                name = value.strip()
                if name:
                    return name
        return None

    def wait_for_daemon(self, stop_event: threading.Event,
                        interval: float = base_config.INITIAL_ZREPL_RETRY_INTERVAL) -> bool:
        """Block until ``zpool status`` succeeds.

        Returns False if ``stop_event`` was set before the daemon answered.
        """
        while not stop_event.is_set():
            result = self.status()
            if result.ok:
                logger.info("Pool daemon is ready")
                return True
            logger.error(f"zpool status returned error in zrepl startup: {result.output.strip()}")
            logger.info("Waiting for zpool replication container to start...")
            stop_event.wait(interval)
        return False

    def watch_pool(self, stop_event: threading.Event,
                   interval: float = base_config.CONTINUOUS_ZREPL_RETRY_INTERVAL) -> bool:
        """Block while the imported pool stays visible.

        Returns True when the pool disappeared or the tool started failing,
        False when ``stop_event`` was set first.
        """
        while not stop_event.wait(interval):
            result = self.status()
            if not result.ok:
                logger.error(f"zpool status returned error in zrepl healthcheck: {result.output.strip()}")
                return True
            if STATUS_NO_POOLS_AVAILABLE in result.output:
                logger.error("Imported pool is no longer available")
                return True
        return False
