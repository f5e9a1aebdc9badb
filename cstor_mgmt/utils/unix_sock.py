"""Client for the istgt control socket.

The daemon accepts newline terminated text commands (``STATUS``,
``REFRESH``) and answers with one or more CRLF terminated lines, the last
of which starts with ``OK`` or ``ERR``. Each call opens a short-lived
connection.
"""

import logging
import socket
from typing import List

from .errors import TransientIOError

logger = logging.getLogger(__name__)

STATUS_CMD = "STATUS"
REFRESH_CMD = "REFRESH"

_RECV_SIZE = 4096


class UnixSock:
    """Sends commands to a Unix-domain stream socket."""

    def __init__(self, path: str, timeout: float = 5.0):
        self.path = path
        self.timeout = timeout

    def send_command(self, command: str) -> List[str]:
        """Send ``command`` and return the reply lines.

        Raises:
            TransientIOError: connecting, sending or receiving failed
        """
        if not command.endswith("\n"):
            command += "\n"
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(self.timeout)
                sock.connect(self.path)
                sock.sendall(command.encode('utf-8'))
                return self._read_reply(sock)
        except (OSError, socket.timeout) as e:
            raise TransientIOError(
                f"failed to send {command.strip()} to {self.path}: {str(e)}"
            ) from e

    def _read_reply(self, sock: socket.socket) -> List[str]:
        buf = b""
        while True:
            chunk = sock.recv(_RECV_SIZE)
            if not chunk:
                break
            buf += chunk
            lines = buf.decode('utf-8', errors='replace').splitlines()
            if lines and buf.endswith(b"\n") and lines[-1].startswith(("OK", "ERR")):
                break
        reply = [line.strip() for line in buf.decode('utf-8', errors='replace').splitlines()]
        return [line for line in reply if line]


def reply_is_error(reply: List[str]) -> bool:
    return not reply or any(line.startswith("ERR") for line in reply)
