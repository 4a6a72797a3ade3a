# src/pomo/session/client.py

from __future__ import annotations

import logging
import socket
from pathlib import Path

from ..errors import EndpointUnavailable
from .protocol import MAX_MESSAGE_BYTES, RequestKind, encode_request, parse_response
from .runtime import SessionStatus

logger = logging.getLogger(__name__)


def endpoint_alive(path: str | Path, timeout: float = 0.5) -> bool:
    """True if something is accepting connections on the socket at `path`."""
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        sock.connect(str(path))
        return True
    except OSError:
        return False
    finally:
        sock.close()


class SocketClient:
    """
    Blocking client for the status socket.

    Every call opens a connection, sends one request and reads one response.
    When no session is listening, status()/stop() return None instead of
    raising, so callers can print an empty status.
    """

    def __init__(self, path: str | Path, *, timeout: float = 2.0) -> None:
        self._path = Path(path)
        self._timeout = float(timeout)

    @property
    def path(self) -> Path:
        return self._path

    def status(self) -> SessionStatus | None:
        return self._request(RequestKind.STATUS)

    def stop(self) -> SessionStatus | None:
        return self._request(RequestKind.STOP)

    def _connect(self) -> socket.socket:
        if not self._path.exists():
            raise EndpointUnavailable(f"no session socket at {self._path}")
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self._timeout)
        try:
            sock.connect(str(self._path))
        except OSError as e:
            sock.close()
            raise EndpointUnavailable(f"cannot connect to {self._path}: {e}") from e
        return sock

    def _read_line(self, sock: socket.socket) -> bytes:
        buf = bytearray()
        while not buf.endswith(b"\n"):
            chunk = sock.recv(4096)
            if not chunk:
                break
            buf.extend(chunk)
            if len(buf) > MAX_MESSAGE_BYTES:
                break
        return bytes(buf)

    def _request(self, kind: RequestKind) -> SessionStatus | None:
        try:
            sock = self._connect()
        except EndpointUnavailable as e:
            logger.debug("No active session: %s", e)
            return None

        with sock:
            try:
                sock.sendall(encode_request(kind))
                line = self._read_line(sock)
            except TimeoutError:
                logger.warning("Session at %s did not answer within %.1fs", self._path, self._timeout)
                return None
            except OSError as e:
                logger.warning("Session at %s went away: %s", self._path, e)
                return None

        return parse_response(line)
