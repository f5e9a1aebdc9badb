"""Common test utilities for the cStor controllers."""

from .fakes import FakeIstgtServer, ScriptRunner
from .fixtures import make_pool, make_replica, make_volume, written_phases

__all__ = [
    'FakeIstgtServer',
    'ScriptRunner',
    'make_pool',
    'make_replica',
    'make_volume',
    'written_phases',
]
