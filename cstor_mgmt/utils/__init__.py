"""Shared utilities: command runner, errors, file and socket helpers."""

from .errors import (
    CStorError,
    InvalidSpecError,
    ToolFailureError,
    TransientIOError,
    PoolNotFoundError,
    FatalError,
)
from .runner import Runner, RealRunner, RunResult

__all__ = [
    'CStorError',
    'InvalidSpecError',
    'ToolFailureError',
    'TransientIOError',
    'PoolNotFoundError',
    'FatalError',
    'Runner',
    'RealRunner',
    'RunResult',
]
