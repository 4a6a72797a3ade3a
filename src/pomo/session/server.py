# src/pomo/session/server.py

from __future__ import annotations

import asyncio
import contextlib
import errno
import fcntl
import logging
import os
import socket
from pathlib import Path
from typing import IO

from ..errors import EndpointUnavailable, PomoError, ProtocolFailure
from .client import endpoint_alive
from .protocol import MAX_MESSAGE_BYTES, RequestKind, encode_error, encode_status, parse_request
from .runtime import Session, SessionStatus

logger = logging.getLogger(__name__)


class SocketServer:
    """
    Unix-socket server for one live Session.

    Request/response, one connection at a time: read one request, run it
    against the session, write one response, close. A slow or broken client
    only ever holds the connection lock, never the session lock, so the
    timer loop keeps completing intervals.
    """

    def __init__(
        self,
        session: Session,
        path: str | Path,
        *,
        wake: asyncio.Event | None = None,
        read_timeout: float = 5.0,
    ) -> None:
        self._session = session
        self._path = Path(path)
        self._wake = wake
        self._read_timeout = max(0.1, float(read_timeout))
        self._server: asyncio.AbstractServer | None = None
        self._conn_lock = asyncio.Lock()
        self._lock_file: IO[str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._path.with_name(self._path.name + ".lock")

    def _acquire_lock(self) -> None:
        """Hold an exclusive lock next to the socket for the server's lifetime."""
        try:
            fd = open(self.lock_path, "a+")
        except OSError as e:
            raise EndpointUnavailable(f"cannot open {self.lock_path}: {e}") from e
        try:
            fcntl.flock(fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            fd.close()
            raise EndpointUnavailable(f"a session is already running at {self._path}") from e
        self._lock_file = fd

    def _release_lock(self) -> None:
        fd, self._lock_file = self._lock_file, None
        if fd is None:
            return
        with contextlib.suppress(OSError):
            fcntl.flock(fd.fileno(), fcntl.LOCK_UN)
        fd.close()

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(str(self._path))
        except OSError as e:
            sock.close()
            if e.errno == errno.EADDRINUSE:
                raise EndpointUnavailable(f"a session is already running at {self._path}") from e
            raise EndpointUnavailable(f"cannot bind {self._path}: {e}") from e
        return sock

    async def start(self) -> None:
        """
        Bind the socket. Fails fast with EndpointUnavailable if another
        session holds the lock or is listening; a stale socket file is removed.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._acquire_lock()
        try:
            if self._path.exists():
                if endpoint_alive(self._path):
                    raise EndpointUnavailable(f"a session is already running at {self._path}")
                logger.info("Removing stale session socket %s", self._path)
                with contextlib.suppress(FileNotFoundError):
                    self._path.unlink()

            # Bound here rather than by start_unix_server, which would unlink
            # whatever socket file is already at the path.
            sock = self._bind()
            try:
                self._server = await asyncio.start_unix_server(
                    self._handle,
                    sock=sock,
                    limit=MAX_MESSAGE_BYTES + 1,
                )
            except OSError as e:
                sock.close()
                raise EndpointUnavailable(f"cannot listen on {self._path}: {e}") from e
        except BaseException:
            self._release_lock()
            raise

        with contextlib.suppress(OSError):
            # Access to the session is gated by filesystem permissions.
            os.chmod(self._path, 0o600)
        logger.info("Status socket listening at %s (task=%s)", self._path, self._session.task_id)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        server = self._server
        if server is None:
            raise EndpointUnavailable(f"status socket {self._path} is not bound")
        await server.serve_forever()

    async def close(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        server.close()
        with contextlib.suppress(Exception):
            await server.wait_closed()
        with contextlib.suppress(FileNotFoundError):
            self._path.unlink()
        self._release_lock()
        logger.info("Status socket closed %s", self._path)

    def _execute(self, kind: RequestKind) -> SessionStatus:
        if kind == RequestKind.STOP:
            try:
                return self._session.stop()
            finally:
                if self._wake is not None:
                    self._wake.set()
        return self._session.snapshot()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        async with self._conn_lock:
            try:
                try:
                    line = await asyncio.wait_for(reader.readline(), timeout=self._read_timeout)
                except ValueError as e:
                    # StreamReader limit exceeded.
                    raise ProtocolFailure(f"request too large: {e}") from e

                if not line:
                    # Liveness check (endpoint_alive) or a client that gave up.
                    logger.debug("Status client closed without a request")
                    return

                kind = parse_request(line)
                logger.debug("Status request kind=%s", kind.value)
                writer.write(encode_status(self._execute(kind)))

            except asyncio.TimeoutError:
                logger.warning("Status client sent nothing within %.1fs; closing", self._read_timeout)
            except ProtocolFailure as e:
                logger.warning("Bad status request: %s", e)
                with contextlib.suppress(Exception):
                    writer.write(encode_error(e))
            except PomoError as e:
                logger.error("Status request failed: %s", e)
                with contextlib.suppress(Exception):
                    writer.write(encode_error(e))
            except Exception:
                logger.exception("Status handler crashed.")
            finally:
                with contextlib.suppress(Exception):
                    await asyncio.wait_for(writer.drain(), timeout=self._read_timeout)
                writer.close()
                with contextlib.suppress(Exception):
                    await writer.wait_closed()
