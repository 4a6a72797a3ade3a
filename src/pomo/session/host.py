# src/pomo/session/host.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from pathlib import Path

from ..errors import EndpointUnavailable, PomoError
from .runtime import Session, SessionState, SessionStatus, run_session_timer
from .server import SocketServer

logger = logging.getLogger(__name__)


async def run_session(
    session: Session,
    socket_path: str | Path,
    *,
    poll_interval: float = 1.0,
    on_ready: threading.Event | None = None,
    wake: asyncio.Event | None = None,
) -> SessionStatus:
    """
    Serve `session` on the status socket and drive its timer until it ends.

    The socket is bound before the session starts, so a second session
    fails with EndpointUnavailable without touching the task.
    """
    wake = wake or asyncio.Event()
    server = SocketServer(session, socket_path, wake=wake)
    await server.start()

    serve_task = asyncio.create_task(server.serve_forever())
    try:
        if session.state == SessionState.IDLE:
            session.start()
        if on_ready is not None:
            on_ready.set()
        return await run_session_timer(session, wake, poll_interval=poll_interval)
    finally:
        serve_task.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await serve_task
        await server.close()


class SessionHost:
    """
    Runs the status server and the timer loop in a background thread.

    Why a thread:
    - the foreground (progress display, Ctrl+C handling) is blocking.
    - the session side is async and wants its own event loop.
    """

    def __init__(self, session: Session, socket_path: str | Path, *, poll_interval: float = 1.0) -> None:
        self._session = session
        self._socket_path = Path(socket_path)
        self._poll_interval = poll_interval

        self._ready = threading.Event()
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wake: asyncio.Event | None = None

        self.result: SessionStatus | None = None
        self.error: BaseException | None = None

    @property
    def session(self) -> Session:
        return self._session

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _runner(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._wake = asyncio.Event()

        try:
            self.result = loop.run_until_complete(
                run_session(
                    self._session,
                    self._socket_path,
                    poll_interval=self._poll_interval,
                    on_ready=self._ready,
                    wake=self._wake,
                )
            )
        except BaseException as e:
            self.error = e
            if isinstance(e, PomoError):
                logger.error("Session host stopped: %s", e)
            else:
                logger.exception("Session host crashed.")
        finally:
            # Unblock start() even when binding failed.
            self._ready.set()
            with contextlib.suppress(Exception):
                loop.close()

    def start(self, timeout: float = 5.0) -> None:
        """Start the background thread; raise if the socket could not be bound."""
        t = threading.Thread(target=self._runner, name=f"pomo-session-{self._session.task_id}", daemon=True)
        self._thread = t
        t.start()

        if not self._ready.wait(timeout=timeout):
            raise EndpointUnavailable(f"session socket {self._socket_path} did not come up in {timeout:.0f}s")
        if self.error is not None:
            t.join(timeout=timeout)
            raise self.error
        logger.info("Session host started task=%s socket=%s", self._session.task_id, self._socket_path)

    def stop(self) -> SessionStatus:
        """Stop the session (idempotent) and wake the timer loop so the thread exits."""
        status = self._session.stop()
        loop, wake = self._loop, self._wake
        if loop is not None and wake is not None:
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(wake.set)
        return status

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def wait(self, timeout: float | None = None) -> SessionStatus | None:
        """Wait for the session to end; return its final status or raise its error."""
        self.join(timeout=timeout)
        if self.error is not None:
            raise self.error
        return self.result
