"""Constants and helpers shared by the pool and replica controllers."""

import logging
import threading
from typing import Iterable, List, Optional

from ..config import base_config
from ..pool.pool import PoolExecutor
from ..utils.errors import PoolNotFoundError

logger = logging.getLogger(__name__)


class EventReason:
    """Reasons attached to recorded events."""
    IMPORTED = "Imported"
    CREATED = "Created"
    DESTROYED = "Destroyed"
    FAIL_CREATE = "FailCreate"
    FAIL_VALIDATE = "FailValidate"
    FAIL_DESTROY = "FailDestroy"
    FAIL_IMPORT = "FailImport"
    UPDATED = "Updated"
    FAIL_UPDATE = "FailUpdate"


class ImportedVolumes:
    """Datasets found inside a pool when it was imported.

    The pool controller fills the snapshot after a successful import; the
    replica controller consumes entries so volumes that already exist are
    not created again.
    """

    def __init__(self):
        self._volumes: List[str] = []
        self._lock = threading.Lock()

    def replace(self, volumes: Iterable[str]) -> None:
        with self._lock:
            self._volumes = list(volumes)

    def take(self, fq_name: str) -> bool:
        """Remove ``fq_name`` from the snapshot; True if it was present."""
        with self._lock:
            if fq_name in self._volumes:
                self._volumes.remove(fq_name)
                return True
            return False

    def snapshot(self) -> List[str]:
        with self._lock:
            return list(self._volumes)


def pool_name_handler(executor: PoolExecutor,
                      attempts: int = base_config.POOL_NAME_ATTEMPTS,
                      interval: float = base_config.POOL_NAME_HANDLER_INTERVAL,
                      stop_event: Optional[threading.Event] = None) -> str:
    """Poll for the pool active on this node.

    Raises:
        PoolNotFoundError: no pool showed up within ``attempts`` tries
    """
    waiter = stop_event or threading.Event()
    for attempt in range(1, attempts + 1):
        name = executor.current_pool_name()
        if name:
            return name
        logger.info(f"Pool not found yet, attempt {attempt}/{attempts}")
        if attempt == attempts:
            break
        if waiter.wait(interval):
            break
    raise PoolNotFoundError(attempts)
