"""Watch-queue-reconcile controllers for the cStor custom resources."""

from .base import BaseController, classify_update
from .common import EventReason, ImportedVolumes, pool_name_handler
from .informer import AddEvent, DeleteEvent, Informer, TombstoneIndex, UpdateEvent
from .pool_controller import PoolController
from .replica_controller import ReplicaController
from .volume_controller import VolumeController
from .workqueue import RateLimitingQueue

__all__ = [
    "AddEvent",
    "BaseController",
    "DeleteEvent",
    "EventReason",
    "ImportedVolumes",
    "Informer",
    "PoolController",
    "RateLimitingQueue",
    "ReplicaController",
    "TombstoneIndex",
    "UpdateEvent",
    "VolumeController",
    "classify_update",
    "pool_name_handler",
]
