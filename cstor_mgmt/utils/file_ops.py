"""File helpers used when writing daemon configuration."""

import logging
import os
import tempfile

from .errors import TransientIOError

logger = logging.getLogger(__name__)


def atomic_write(path: str, data: bytes, mode: int = 0o644) -> None:
    """Write ``data`` to ``path`` so readers never observe a partial file.

    The bytes go to a temporary file in the same directory which is then
    renamed over the destination.
    """
    directory = os.path.dirname(path) or '.'
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix='.' + os.path.basename(path) + '.', dir=directory)
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as e:
        logger.error(f"Failed to write {path}: {str(e)}")
        raise TransientIOError(f"failed to write {path}: {str(e)}") from e
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
