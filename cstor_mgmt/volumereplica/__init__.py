"""Dataset executor over the zfs tool."""

from .volumereplica import DatasetExecutor, validate_replica

__all__ = ["DatasetExecutor", "validate_replica"]
