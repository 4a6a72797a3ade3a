# src/pomo/session/runtime.py

from __future__ import annotations

"""
Session runtime.

A Session owns one stored Task and walks its pomodoros through:

    idle -> running(i) -> [interval done] -> running(i+1) ... -> completed
                       `-> stopped (external stop)

Progress is always derived from the stored start timestamps and the clock,
never from counted ticks, so a late or missed wake-up cannot make the
status drift. Every step that finalizes a pomodoro writes the task through
the store before the calling method returns.

The timer loop (run_session_timer) and the status socket share one Session;
all access goes through the Session's lock.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.ports import Clock, TaskRepo
from ..errors import InvalidArgument, PersistenceFailure, PomoError
from ..tasks.models import PomodoroState, Task

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"  # persist failed; terminal

    @classmethod
    def from_wire(cls, raw: str | None) -> SessionState:
        try:
            return cls(raw or "")
        except ValueError:
            return cls.IDLE


_TERMINAL = frozenset({SessionState.COMPLETED, SessionState.STOPPED, SessionState.FAILED})


@dataclass(slots=True, frozen=True)
class PomodoroStatus:
    index: int
    start: float | None
    end: float | None
    state: PomodoroState

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "start": self.start, "end": self.end, "state": self.state.value}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> PomodoroStatus:
        try:
            state = PomodoroState(raw.get("state") or "pending")
        except ValueError:
            state = PomodoroState.PENDING
        start = raw.get("start")
        end = raw.get("end")
        return cls(
            index=int(raw.get("index") or 0),
            start=float(start) if start is not None else None,
            end=float(end) if end is not None else None,
            state=state,
        )


@dataclass(slots=True, frozen=True)
class SessionStatus:
    """Point-in-time snapshot of a session, as served over the status socket."""

    task_id: int
    message: str
    tags: tuple[str, ...]
    duration: float
    state: SessionState
    active_index: int | None
    pomodoros: tuple[PomodoroStatus, ...]
    at: float

    @property
    def active(self) -> PomodoroStatus | None:
        if self.active_index is None or not (0 <= self.active_index < len(self.pomodoros)):
            return None
        return self.pomodoros[self.active_index]

    @property
    def remaining(self) -> float | None:
        """Seconds left in the running pomodoro."""
        p = self.active
        if p is None or p.state != PomodoroState.RUNNING or p.start is None:
            return None
        return max(0.0, p.start + self.duration - self.at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "message": self.message,
            "tags": list(self.tags),
            "duration": self.duration,
            "state": self.state.value,
            "active_index": self.active_index,
            "pomodoros": [p.to_dict() for p in self.pomodoros],
            "at": self.at,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SessionStatus:
        active = raw.get("active_index")
        return cls(
            task_id=int(raw.get("task_id") or 0),
            message=str(raw.get("message") or ""),
            tags=tuple(str(t) for t in raw.get("tags") or []),
            duration=float(raw.get("duration") or 0.0),
            state=SessionState.from_wire(raw.get("state")),
            active_index=int(active) if active is not None else None,
            pomodoros=tuple(PomodoroStatus.from_dict(p) for p in raw.get("pomodoros") or []),
            at=float(raw.get("at") or 0.0),
        )


class Session:
    def __init__(self, task: Task, store: TaskRepo, *, clock: Clock = time.time) -> None:
        if task.id <= 0:
            raise InvalidArgument("a session needs a stored task (id > 0)")
        if task.duration <= 0:
            raise InvalidArgument(f"task {task.id} has no pomodoro duration")

        self._task = task
        self._store = store
        self._clock = clock
        self._lock = threading.Lock()
        self._state = SessionState.IDLE
        self._cursor = self._first_unfinished()
        self._error: PomoError | None = None

    # ---- read-only views ----

    @property
    def task_id(self) -> int:
        return self._task.id

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    @property
    def error(self) -> PomoError | None:
        return self._error

    @property
    def is_terminal(self) -> bool:
        return self.state in _TERMINAL

    def now(self) -> float:
        return self._clock()

    def next_deadline(self) -> float | None:
        """Nominal end of the running pomodoro, or None when nothing runs."""
        with self._lock:
            if self._state != SessionState.RUNNING:
                return None
            return self._running_start_locked() + self._task.duration

    # ---- transitions ----

    def start(self) -> SessionStatus:
        """Idle -> running at the first unfinished pomodoro. No-op otherwise."""
        with self._lock:
            now = self._clock()
            if self._state != SessionState.IDLE:
                return self._snapshot_locked(now)

            self._cursor = self._first_unfinished()
            if self._cursor >= len(self._task.pomodoros):
                self._state = SessionState.COMPLETED
                logger.info("Task %s has no pomodoros left; session completed", self._task.id)
                return self._snapshot_locked(now)

            p = self._task.pomodoros[self._cursor]
            if p.start is None:
                p.start = now
            self._state = SessionState.RUNNING
            self._persist_locked()
            logger.info(
                "Session started task=%s pomodoro=%d/%d",
                self._task.id,
                self._cursor + 1,
                len(self._task.pomodoros),
            )

            # A resumed pomodoro may already be past its boundary.
            self._advance_locked(now)
            return self._snapshot_locked(now)

    def advance(self) -> bool:
        """Finalize every pomodoro whose interval has elapsed. True if anything changed."""
        with self._lock:
            return self._advance_locked(self._clock())

    def stop(self) -> SessionStatus:
        """
        Stop the running pomodoro at "now".

        Intervals that already elapsed are completed first. Stopping an idle
        or finished session changes nothing.
        """
        with self._lock:
            now = self._clock()
            self._advance_locked(now)
            if self._state == SessionState.RUNNING:
                p = self._task.pomodoros[self._cursor]
                p.end = max(now, p.start or now)
                self._state = SessionState.STOPPED
                self._persist_locked()
                logger.info("Session stopped task=%s pomodoro=%d", self._task.id, self._cursor + 1)
            return self._snapshot_locked(now)

    def snapshot(self) -> SessionStatus:
        with self._lock:
            now = self._clock()
            self._advance_locked(now)
            return self._snapshot_locked(now)

    # ---- internals (caller holds the lock) ----

    def _first_unfinished(self) -> int:
        for i, p in enumerate(self._task.pomodoros):
            if p.end is None:
                return i
        return len(self._task.pomodoros)

    def _running_start_locked(self) -> float:
        start = self._task.pomodoros[self._cursor].start
        if start is None:
            raise PomoError(f"task {self._task.id}: running pomodoro {self._cursor + 1} has no start")
        return start

    def _advance_locked(self, now: float) -> bool:
        changed = False
        pomodoros = self._task.pomodoros
        while self._state == SessionState.RUNNING:
            p = pomodoros[self._cursor]
            boundary = self._running_start_locked() + self._task.duration
            if now < boundary:
                break

            p.end = boundary
            self._cursor += 1
            if self._cursor < len(pomodoros):
                # Chain from the boundary, not from "now", so a late wake-up does not drift.
                pomodoros[self._cursor].start = boundary
            else:
                self._state = SessionState.COMPLETED

            self._persist_locked()
            changed = True
            logger.info(
                "Pomodoro %d/%d completed task=%s",
                self._cursor,
                len(pomodoros),
                self._task.id,
            )
        return changed

    def _persist_locked(self) -> None:
        try:
            self._store.write_pomodoros(self._task)
        except Exception as e:
            self._state = SessionState.FAILED
            logger.error("Session failed to persist task=%s: %s", self._task.id, e)
            if isinstance(e, PersistenceFailure):
                self._error = e
                raise
            self._error = PersistenceFailure(f"cannot persist task {self._task.id}: {e}")
            raise self._error from e

    def _snapshot_locked(self, now: float) -> SessionStatus:
        duration = self._task.duration
        pomodoros = tuple(
            PomodoroStatus(index=i, start=p.start, end=p.end, state=p.state(duration, now))
            for i, p in enumerate(self._task.pomodoros)
        )
        active = self._cursor if self._cursor < len(pomodoros) else None
        return SessionStatus(
            task_id=self._task.id,
            message=self._task.message,
            tags=tuple(self._task.tags),
            duration=duration,
            state=self._state,
            active_index=active,
            pomodoros=pomodoros,
            at=now,
        )


async def run_session_timer(
        session: Session,
        wake: asyncio.Event | None = None,
        *,
        poll_interval: float = 1.0,
) -> SessionStatus:
    """
    Drive a session until it is completed, stopped or failed.

    Sleeps until the running pomodoro's boundary, but never longer than
    poll_interval, and wakes early when `wake` is set (the status server
    sets it after a stop). Returns the final snapshot; a persist failure is
    re-raised.

    To abandon the loop without stopping the session, cancel the coroutine/task.
    """
    sleep_cap = max(0.01, float(poll_interval))

    if session.state == SessionState.IDLE:
        session.start()

    while not session.is_terminal:
        deadline = session.next_deadline()
        timeout = sleep_cap if deadline is None else max(0.0, min(sleep_cap, deadline - session.now()))

        if wake is None:
            await asyncio.sleep(timeout)
        else:
            try:
                await asyncio.wait_for(wake.wait(), timeout=timeout)
                wake.clear()
            except asyncio.TimeoutError:
                pass

        session.advance()

    if session.error is not None:
        raise session.error

    final = session.snapshot()
    logger.info("Session finished task=%s state=%s", final.task_id, final.state.value)
    return final
