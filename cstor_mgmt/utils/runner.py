"""Execution of external storage tools.

Every pool, dataset and file operation is an argv vector handed to a
:class:`Runner`. :class:`RealRunner` forks the tool; tests use a scripted
runner so reconcilers never fork.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        if self.stdout and self.stderr:
            return self.stdout + self.stderr
        return self.stdout or self.stderr


class Runner(ABC):
    """Interface for running an external command to completion."""

    @abstractmethod
    def run(self, program: str, *args: str) -> RunResult:
        """Run ``program args...`` and capture its output."""


class RealRunner(Runner):
    """Runs commands with :mod:`subprocess`."""

    def run(self, program: str, *args: str) -> RunResult:
        argv = [program, *args]
        logger.debug(f"Running {' '.join(argv)}")
        try:
            proc = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
            )
        except OSError as e:
            # binary missing or not executable; report like a failed run
            logger.error(f"Failed to execute {program}: {str(e)}")
            return RunResult(argv=argv, returncode=127, stderr=str(e))

        return RunResult(
            argv=argv,
            returncode=proc.returncode,
            stdout=proc.stdout.decode('utf-8', errors='replace'),
            stderr=proc.stderr.decode('utf-8', errors='replace'),
        )
