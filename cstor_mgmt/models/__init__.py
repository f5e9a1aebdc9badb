"""Resource models for the cStor custom resources."""

from .models import (
    Phase,
    PoolType,
    QueueOperation,
    QueueItem,
    ResourceKind,
    ObjectMeta,
    ResourceStatus,
    CustomResource,
    CStorPoolSpec,
    CStorPool,
    CStorVolumeReplicaSpec,
    CStorVolumeReplica,
    CStorVolumeSpec,
    CStorVolume,
    POOL_GUID_ANNOTATION,
)

__all__ = [
    'Phase',
    'PoolType',
    'QueueOperation',
    'QueueItem',
    'ResourceKind',
    'ObjectMeta',
    'ResourceStatus',
    'CustomResource',
    'CStorPoolSpec',
    'CStorPool',
    'CStorVolumeReplicaSpec',
    'CStorVolumeReplica',
    'CStorVolumeSpec',
    'CStorVolume',
    'POOL_GUID_ANNOTATION',
]
