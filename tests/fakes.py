# tests/fakes.py

from __future__ import annotations

import copy

from pomo.errors import NotFound, PersistenceFailure
from pomo.tasks.models import Task


class FakeClock:
    """Manually advanced clock (epoch seconds)."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeTaskRepo:
    """
    In-memory TaskRepo used for runtime unit tests.

    Stores deep copies so a test can tell what was actually persisted
    from what the session holds in memory.
    """

    def __init__(self) -> None:
        self.tasks: dict[int, Task] = {}
        self.writes = 0
        self._next_id = 1

    def read_task(self, task_id: int) -> Task:
        try:
            return copy.deepcopy(self.tasks[task_id])
        except KeyError:
            raise NotFound(f"task {task_id} not found") from None

    def read_tasks(self, *, since: float | None = None, until: float | None = None) -> list[Task]:
        return [copy.deepcopy(t) for t in self.tasks.values()]

    def write_task(self, task: Task, *, parent_id: int | None = None) -> int:
        if task.id == 0:
            task.id = self._next_id
            self._next_id += 1
        self.tasks[task.id] = copy.deepcopy(task)
        self.writes += 1
        return task.id

    def write_pomodoros(self, task: Task) -> None:
        stored = self.tasks.get(task.id)
        if stored is None:
            raise NotFound(f"task {task.id} not found")
        stored.pomodoros = copy.deepcopy(task.pomodoros)
        self.writes += 1

    def delete_task(self, task_id: int) -> None:
        if self.tasks.pop(task_id, None) is None:
            raise NotFound(f"task {task_id} not found")


class FailingTaskRepo(FakeTaskRepo):
    """Accepts the first `ok_writes` writes, then fails every write."""

    def __init__(self, ok_writes: int) -> None:
        super().__init__()
        self.ok_writes = ok_writes

    def write_task(self, task: Task, *, parent_id: int | None = None) -> int:
        if self.writes >= self.ok_writes:
            raise PersistenceFailure("disk full")
        return super().write_task(task, parent_id=parent_id)

    def write_pomodoros(self, task: Task) -> None:
        if self.writes >= self.ok_writes:
            raise PersistenceFailure("disk full")
        super().write_pomodoros(task)
