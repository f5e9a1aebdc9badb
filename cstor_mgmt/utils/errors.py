"""Error kinds raised by executors and reconcilers."""

from typing import Sequence


class CStorError(Exception):
    """Base class for cStor controller errors."""
    retryable = True

    def __init__(self, message, reason='InternalError'):
        super().__init__(message)
        self.message = message
        self.reason = reason


class InvalidSpecError(CStorError):
    """Resource failed its structural validation."""
    retryable = False

    def __init__(self, message):
        super().__init__(message, 'FailValidate')


class ToolFailureError(CStorError):
    """External tool exited non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int, output: str):
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"{' '.join(self.argv)} exited with status {returncode}: {output.strip()}",
            'ToolFailure'
        )


class TransientIOError(CStorError):
    """Filesystem or socket operation failed."""

    def __init__(self, message):
        super().__init__(message, 'TransientIO')


class PoolNotFoundError(CStorError):
    """No pool became active within the allowed attempts."""

    def __init__(self, attempts):
        super().__init__(f"No pool found after {attempts} attempts", 'PoolNotFound')
        self.attempts = attempts


class FatalError(CStorError):
    """Startup cannot continue; the process exits non-zero."""
    retryable = False

    def __init__(self, message):
        super().__init__(message, 'Fatal')
