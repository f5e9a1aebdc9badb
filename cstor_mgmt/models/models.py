"""Data models for the cStor custom resources and work queue items."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from ..config import base_config

POOL_GUID_ANNOTATION = "cstor-pool-guid"


def _to_int(value: Any) -> int:
    """Integer spec field; unparsable values read as 0 so validation rejects them."""
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


# Enums
class Phase(str, Enum):
    """Values written to ``.status.phase``."""
    INIT = "Init"
    ONLINE = "Online"
    OFFLINE = "Offline"
    DELETION_FAILED = "DeletionFailed"
    INVALID = "Invalid"
    FAILED = "Failed"
    IGNORE = "Ignore"  # suppresses the status write


class PoolType(str, Enum):
    STRIPED = "striped"
    MIRRORED = "mirrored"
    RAIDZ = "raidz"
    RAIDZ2 = "raidz2"


class QueueOperation(str, Enum):
    ADD = "add"
    MODIFY = "modify"
    PERIODIC_SYNC = "sync"
    DESTROY = "destroy"


@dataclass(frozen=True)
class QueueItem:
    """Work queue entry; de-duplicated on (key, operation)."""
    key: str
    operation: QueueOperation


@dataclass(frozen=True)
class ResourceKind:
    """Coordinates of a custom resource type on the API server."""
    kind: str
    plural: str
    namespaced: bool
    group: str = base_config.OPENEBS_API_GROUP
    version: str = base_config.OPENEBS_API_VERSION


# Core resource models
@dataclass
class ObjectMeta:
    name: str
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    deletion_timestamp: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ObjectMeta':
        return cls(
            name=data.get("name", ""),
            namespace=data.get("namespace") or "",
            uid=data.get("uid") or "",
            resource_version=data.get("resourceVersion") or "",
            deletion_timestamp=data.get("deletionTimestamp"),
            labels=dict(data.get("labels") or {}),
            annotations=dict(data.get("annotations") or {}),
        )

    @property
    def key(self) -> str:
        """namespace/name, or just name for cluster scoped objects."""
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name


@dataclass
class ResourceStatus:
    phase: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ResourceStatus':
        return cls(phase=(data or {}).get("phase") or "")


@dataclass
class CustomResource:
    """Common shape of the openebs.io resources handled here."""
    KIND: ClassVar[ResourceKind]

    metadata: ObjectMeta
    spec: Any
    status: ResourceStatus = field(default_factory=ResourceStatus)

    @classmethod
    def spec_from_dict(cls, data: Dict[str, Any]) -> Any:
        raise NotImplementedError

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata") or {}),
            spec=cls.spec_from_dict(data.get("spec") or {}),
            status=ResourceStatus.from_dict(data.get("status")),
        )

    @property
    def key(self) -> str:
        return self.metadata.key

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def uid(self) -> str:
        return self.metadata.uid

    def only_status_changed(self, other: 'CustomResource') -> bool:
        """True when ``other`` differs from this object in status alone."""
        return (
            self.spec == other.spec
            and self.metadata.labels == other.metadata.labels
            and self.metadata.annotations == other.metadata.annotations
            and self.metadata.deletion_timestamp == other.metadata.deletion_timestamp
            and self.status != other.status
        )


@dataclass
class CStorPoolSpec:
    pool_name: str
    disks: List[str] = field(default_factory=list)
    cache_file: str = ""
    pool_type: str = PoolType.STRIPED.value


@dataclass
class CStorPool(CustomResource):
    """Declarative description of a storage pool built from block devices."""
    KIND: ClassVar[ResourceKind] = ResourceKind(
        kind="CStorPool", plural="cstorpools", namespaced=False
    )

    @classmethod
    def spec_from_dict(cls, data: Dict[str, Any]) -> CStorPoolSpec:
        pool_spec = data.get("poolSpec") or {}
        disks = (data.get("disks") or {}).get("diskList") or []
        return CStorPoolSpec(
            pool_name=pool_spec.get("poolName") or "",
            disks=list(disks),
            cache_file=pool_spec.get("cacheFile") or "",
            pool_type=pool_spec.get("poolType") or PoolType.STRIPED.value,
        )


@dataclass
class CStorVolumeReplicaSpec:
    vol_name: str
    capacity: str


@dataclass
class CStorVolumeReplica(CustomResource):
    """Thin volume carved from the pool active on this node."""
    KIND: ClassVar[ResourceKind] = ResourceKind(
        kind="CStorVolumeReplica", plural="cstorvolumereplicas", namespaced=True
    )

    @classmethod
    def spec_from_dict(cls, data: Dict[str, Any]) -> CStorVolumeReplicaSpec:
        return CStorVolumeReplicaSpec(
            vol_name=data.get("volName") or "",
            capacity=str(data.get("capacity") or ""),
        )

    @property
    def pool_guid(self) -> str:
        return self.metadata.annotations.get(POOL_GUID_ANNOTATION, "")


@dataclass
class CStorVolumeSpec:
    volume_name: str
    capacity: str
    target_ip: str
    replication_factor: int = 0
    consistency_factor: int = 0


@dataclass
class CStorVolume(CustomResource):
    """iSCSI target exported by the istgt daemon."""
    KIND: ClassVar[ResourceKind] = ResourceKind(
        kind="CStorVolume", plural="cstorvolumes", namespaced=True
    )

    @classmethod
    def spec_from_dict(cls, data: Dict[str, Any]) -> CStorVolumeSpec:
        return CStorVolumeSpec(
            volume_name=data.get("volumeName") or "",
            capacity=str(data.get("capacity") or ""),
            target_ip=data.get("targetIP") or "",
            replication_factor=_to_int(data.get("replicationFactor")),
            consistency_factor=_to_int(data.get("consistencyFactor")),
        )
