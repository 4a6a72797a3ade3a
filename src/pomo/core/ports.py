# src/pomo/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the session runtime and the CLI.

The runtime depends on Protocols instead of the SQLite store, which keeps
storage swappable and lets tests run sessions against in-memory fakes.
"""

from collections.abc import Callable
from typing import Protocol

from ..tasks.models import Task

Clock = Callable[[], float]
# Returns "now" as epoch seconds (time.time in production).


class TaskRepo(Protocol):
    """
    Persistence collaborator.

    All methods are atomic with respect to each other: a reader never sees
    a task half-written.
    """

    def read_task(self, task_id: int) -> Task: ...

    def read_tasks(self, *, since: float | None = None, until: float | None = None) -> list[Task]: ...

    def write_task(self, task: Task, *, parent_id: int | None = None) -> int: ...

    def write_pomodoros(self, task: Task) -> None: ...

    def delete_task(self, task_id: int) -> None: ...
