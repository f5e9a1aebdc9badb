"""Pool executor over the zpool tool."""

from .pool import PoolExecutor, ImportResult

__all__ = ["PoolExecutor", "ImportResult"]
