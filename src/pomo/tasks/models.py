# src/pomo/tasks/models.py

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..errors import InvalidArgument

ROOT_TASK_ID = 0


class PomodoroState(StrEnum):
    """
    Derived pomodoro state. Never stored; computed from start/end,
    the owning task's duration and "now".
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED_EARLY = "stopped-early"


@dataclass(slots=True)
class Pomodoro:
    start: float | None = None
    end: float | None = None

    def state(self, duration: float, now: float) -> PomodoroState:
        if self.start is None:
            return PomodoroState.PENDING
        boundary = self.start + duration
        if self.end is None:
            return PomodoroState.RUNNING if now < boundary else PomodoroState.COMPLETED
        if self.end >= boundary:
            return PomodoroState.COMPLETED
        return PomodoroState.STOPPED_EARLY

    @property
    def finished(self) -> bool:
        return self.end is not None

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Pomodoro:
        start = raw.get("start")
        end = raw.get("end")
        return cls(
            start=float(start) if start is not None else None,
            end=float(end) if end is not None else None,
        )


@dataclass(slots=True, eq=False)
class Task:
    id: int = ROOT_TASK_ID
    message: str = ""
    tags: list[str] = field(default_factory=list)
    duration: float = 0.0
    pomodoros: list[Pomodoro] = field(default_factory=list)
    subtasks: list[Task] = field(default_factory=list)

    # Tasks with a store-assigned id compare by id; unsaved tasks and the
    # synthetic root compare by identity.
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Task):
            return NotImplemented
        if self.id and other.id:
            return self.id == other.id
        return self is other

    def __hash__(self) -> int:
        return hash(("task", self.id)) if self.id else id(self)

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_TASK_ID

    @property
    def started_at(self) -> float | None:
        starts = [p.start for p in self.pomodoros if p.start is not None]
        return min(starts) if starts else None

    def completed_count(self, now: float) -> int:
        return sum(
            1 for p in self.pomodoros if p.state(self.duration, now) == PomodoroState.COMPLETED
        )

    def info(self, now: float) -> str:
        """One-line summary used by flattened output."""
        tags = f" [{' '.join(self.tags)}]" if self.tags else ""
        return (
            f"[{self.id}] [{self.completed_count(now)}/{len(self.pomodoros)}] "
            f"{format_duration(self.duration)} - {self.message}{tags}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "tags": list(self.tags),
            "duration": self.duration,
            "pomodoros": [p.to_dict() for p in self.pomodoros],
            "subtasks": [t.to_dict() for t in self.subtasks],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        return cls(
            id=int(raw.get("id") or 0),
            message=str(raw.get("message") or ""),
            tags=[str(t) for t in raw.get("tags") or []],
            duration=float(raw.get("duration") or 0.0),
            pomodoros=[Pomodoro.from_dict(p) for p in raw.get("pomodoros") or []],
            subtasks=[cls.from_dict(t) for t in raw.get("subtasks") or []],
        )


def new_pomodoros(count: int) -> list[Pomodoro]:
    if count <= 0:
        raise InvalidArgument(f"pomodoro count must be positive, got {count}")
    return [Pomodoro() for _ in range(count)]


def new_task(*, message: str, duration: float, pomodoros: int, tags: list[str] | None = None) -> Task:
    message = (message or "").strip()
    if not message:
        raise InvalidArgument("task message is required")
    if duration <= 0:
        raise InvalidArgument(f"duration must be positive, got {duration}")
    return Task(
        message=message,
        tags=list(tags or []),
        duration=float(duration),
        pomodoros=new_pomodoros(pomodoros),
    )


# ---- durations ----

_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}
_PART = re.compile(r"(\d+(?:\.\d+)?|\.\d+)(ms|h|m|s)")


def parse_duration(raw: str) -> float:
    """
    Parse a Go-style duration ("25m", "1h30m", "90s", "1.5h") into seconds.
    """
    text = (raw or "").strip().lower()
    if not text:
        raise InvalidArgument("empty duration")

    pos = 0
    total = 0.0
    for m in _PART.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _UNITS[m.group(2)]
        pos = m.end()

    if pos != len(text) or pos == 0:
        raise InvalidArgument(f"malformed duration: {raw!r}")
    if total <= 0:
        raise InvalidArgument(f"duration must be positive: {raw!r}")
    return total


def format_duration(seconds: float) -> str:
    if seconds <= 0:
        return "0s"
    if seconds < 1:
        return f"{int(round(seconds * 1000))}ms"

    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)

    out = ""
    if hours:
        out += f"{hours}h"
    if minutes:
        out += f"{minutes}m"
    if secs or not out:
        out += f"{secs}s"
    return out
